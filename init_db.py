from database import engine, Base, SessionLocal
from models.user import User, UserRole
from services.auth_service import AuthService
from config import settings
import logging

logger = logging.getLogger(__name__)

def ensure_admin(db):
    """Create the bootstrap admin when no admin account exists yet"""
    existing_admin = db.query(User).filter(User.role == UserRole.ADMIN).first()
    if existing_admin:
        logger.info("Admin user already exists")
        return existing_admin

    admin = AuthService.create_user(
        db=db,
        name="Admin",
        email=settings.admin_email,
        password=settings.admin_password,
        role=UserRole.ADMIN
    )
    logger.info(f"Admin user created: {admin.email}")
    return admin

def init_database():
    Base.metadata.create_all(bind=engine)
    print("Database tables created successfully!")

    db = SessionLocal()
    try:
        admin = ensure_admin(db)
        print(f"Admin account: {admin.email}")
    finally:
        db.close()

if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level)
    init_database()
