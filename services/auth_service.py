from sqlalchemy.orm import Session
from models.user import User, UserRole
from utils.security import (
    verify_password, get_password_hash, create_access_token,
    create_refresh_token, decode_token, validate_password_strength
)
from services.exceptions import DuplicateKeyError
from typing import Optional, Tuple, Dict
import logging

logger = logging.getLogger(__name__)

class AuthService:
    @staticmethod
    def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
        """Authenticate user with email and password"""
        user = db.query(User).filter(User.email == email.lower()).first()
        if not user:
            logger.warning(f"Login attempt with unknown email: {email[:3]}****")
            return None
        if not user.is_active:
            logger.warning(f"Login attempt for deactivated user: {user.id}")
            return None
        if not verify_password(password, user.password_hash):
            logger.warning(f"Failed login attempt for user: {user.id}")
            return None
        logger.info(f"Successful login for user: {user.id}")
        return user

    @staticmethod
    def create_user(
        db: Session,
        name: str,
        email: str,
        password: str,
        role: UserRole,
        must_change_password: bool = True
    ) -> User:
        """Create a new user; emails are unique case-insensitively"""
        email = email.lower()
        if db.query(User.id).filter(User.email == email).first():
            raise DuplicateKeyError("Email already in use")

        user = User(
            name=name,
            email=email,
            password_hash=get_password_hash(password),
            role=role,
            must_change_password=must_change_password
        )
        db.add(user)
        db.commit()
        db.refresh(user)

        logger.info(f"New user created: {user.id} with role: {role.value}")
        return user

    @staticmethod
    def generate_tokens(user: User) -> Dict[str, str]:
        """Generate both access and refresh tokens"""
        token_data = {
            "sub": user.email,
            "role": user.role.value,
            "user_id": user.id
        }
        return {
            "access_token": create_access_token(data=token_data),
            "refresh_token": create_refresh_token(data=token_data)
        }

    @staticmethod
    def user_from_refresh_token(db: Session, refresh_token: str) -> Optional[User]:
        """Resolve the active user a refresh token was issued to"""
        payload = decode_token(refresh_token, "refresh")
        if not payload:
            logger.warning("Invalid refresh token attempted")
            return None

        user = db.query(User).filter(User.email == payload.get("sub")).first()
        if not user or not user.is_active:
            logger.warning("Refresh token for missing or deactivated user")
            return None

        return user

    @staticmethod
    def change_password(db: Session, user: User, new_password: str) -> User:
        user.password_hash = get_password_hash(new_password)
        user.must_change_password = False
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def verify_password_strength(password: str) -> Tuple[bool, str]:
        """Validate password meets security requirements"""
        return validate_password_strength(password)
