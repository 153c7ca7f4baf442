from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field, validator
from typing import List, Optional
from datetime import datetime
from database import get_db
from models.user import User, UserRole
from models.trip import Trip
from models.notification import Notification
from services.auth_service import AuthService
from services.exceptions import NotFoundError, ConflictError, DuplicateKeyError, InvalidInputError
from services.persistence import commit_or_duplicate
from utils.auth_dependency import get_current_admin
from utils.pagination import paginate
from utils.security import generate_password
from config import settings
import logging
import re

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
DUPLICATE_EMAIL = "Email already in use"

def _normalize_email(v):
    v = v.strip().lower()
    if not EMAIL_PATTERN.match(v):
        raise ValueError('Invalid email format')
    return v

class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=255)
    role: UserRole = UserRole.DRIVER

    @validator('email')
    def validate_email(cls, v):
        return _normalize_email(v)

class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None

    @validator('email')
    def validate_email(cls, v):
        return _normalize_email(v) if v is not None else v

class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: UserRole
    is_active: bool
    must_change_password: bool
    created_at: datetime

    class Config:
        from_attributes = True

class UserCreatedResponse(BaseModel):
    user: UserResponse
    # Shown once; only the hash is stored
    password: str

class UserPage(BaseModel):
    items: List[UserResponse]
    total: int
    page: int
    limit: int
    total_pages: int

def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user

@router.get("/", response_model=UserPage)
def get_users(
    role: Optional[UserRole] = None,
    search: Optional[str] = None,
    order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    if order == "asc":
        query = query.order_by(User.created_at.asc(), User.id.asc())
    else:
        query = query.order_by(User.created_at.desc(), User.id.desc())
    return paginate(query, page, limit)

@router.get("/drivers", response_model=List[UserResponse])
def get_drivers(db: Session = Depends(get_db), current_user: User = Depends(get_current_admin)):
    """Active drivers, for trip assignment"""
    return db.query(User).filter(
        User.role == UserRole.DRIVER,
        User.is_active == True
    ).order_by(User.name).all()

@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_admin)):
    return _get_user(db, user_id)

@router.post("/", response_model=UserCreatedResponse, status_code=201)
def create_user(request: UserCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_admin)):
    """Create an account with a generated password the user must change on first login"""
    password = generate_password()
    user = AuthService.create_user(db, request.name, request.email, password, request.role)
    return UserCreatedResponse(user=UserResponse.from_orm(user), password=password)

@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    request: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    user = _get_user(db, user_id)
    changes = {k: v for k, v in request.dict(exclude_unset=True).items() if v is not None}

    if user.id == current_user.id and (
        changes.get("role", user.role) != UserRole.ADMIN or changes.get("is_active") is False
    ):
        raise InvalidInputError("You cannot demote or deactivate your own account")
    if "role" in changes and changes["role"] != UserRole.DRIVER and user.role == UserRole.DRIVER:
        if db.query(Trip.id).filter(Trip.driver_id == user.id).first():
            raise ConflictError("A driver with trips cannot change role")
    if "email" in changes and changes["email"] != user.email:
        if db.query(User.id).filter(User.email == changes["email"], User.id != user.id).first():
            raise DuplicateKeyError(DUPLICATE_EMAIL)

    for key, value in changes.items():
        setattr(user, key, value)
    commit_or_duplicate(db, DUPLICATE_EMAIL)
    db.refresh(user)

    logger.info(f"User {user.id} updated: {', '.join(sorted(changes))}")
    return user

@router.delete("/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_admin)):
    user = _get_user(db, user_id)
    if user.id == current_user.id:
        raise InvalidInputError("You cannot delete your own account")
    if db.query(Trip.id).filter(Trip.driver_id == user.id).first():
        raise ConflictError("User is assigned to trips and cannot be deleted")

    db.query(Notification).filter(Notification.user_id == user.id).delete(synchronize_session=False)
    db.delete(user)
    db.commit()

    logger.info(f"User {user_id} deleted")
    return {"message": "User deleted successfully"}
