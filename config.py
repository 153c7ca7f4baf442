from pydantic_settings import BaseSettings
from typing import List
import hashlib

def _derive_key(base_secret: str, purpose: str) -> str:
    """Derive a deterministic key from base secret for specific purpose"""
    return hashlib.sha256(f"{base_secret}:{purpose}".encode()).hexdigest()

class Settings(BaseSettings):
    # Empty means the API starts without a database (health reports "not connected")
    database_url: str = ""
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_statement_timeout_ms: int = 30000

    session_secret: str = "fleet-dev-secret-change-in-production"

    @property
    def secret_key(self) -> str:
        """Access token signing key"""
        return _derive_key(self.session_secret, "access_token")

    @property
    def refresh_secret_key(self) -> str:
        """Refresh token signing key"""
        return _derive_key(self.session_secret, "refresh_token")

    @property
    def password_pepper(self) -> str:
        return _derive_key(self.session_secret, "password_pepper")[:32]

    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    refresh_token_expire_days: int = 7

    min_password_length: int = 6

    cors_origins: List[str] = ["http://localhost:5173"]
    log_level: str = "INFO"

    default_page_size: int = 10
    max_page_size: int = 100

    # Bootstrap admin created on first startup
    admin_email: str = "admin@fleet.local"
    admin_password: str = "Admin@123"

    class Config:
        env_file = ".env"

settings = Settings()
