from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional, List


class Settings(BaseSettings):
    # Database Configuration
    database_url: Optional[str] = None
    db_username: Optional[str] = None
    db_password: Optional[str] = None
    db_host: str = "localhost"
    db_port: str = "5432"
    db_name: Optional[str] = None

    # Authentication
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: Optional[int] = 480

    @field_validator('algorithm', mode='before')
    @classmethod
    def parse_algorithm(cls, v):
        if v is None or v == '':
            return "HS256"
        return v

    @field_validator('access_token_expire_minutes', mode='before')
    @classmethod
    def parse_token_expire(cls, v):
        if v is None or v == '':
            return 480
        return int(v)

    rate_limit_enabled: bool = True

    # AWS S3 Configuration
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = "eu-south-1"
    s3_bucket: str = "allevapp-files"
    local_storage_dir: str = "uploads"

    # Upload limits (bytes)
    attachment_max_bytes: int = 10 * 1024 * 1024
    document_max_bytes: int = 50 * 1024 * 1024

    # Email Configuration (SMTP fallback when Microsoft 365 is not configured)
    smtp_server: str = "smtp.office365.com"
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    company_support_email: str = "noreply@allevapp.it"

    # Microsoft 365 / Graph
    microsoft_tenant_id: Optional[str] = None
    microsoft_client_id: Optional[str] = None
    microsoft_client_secret: Optional[str] = None
    microsoft_sender_email: Optional[str] = None
    calendar_timezone: str = "Europe/Rome"

    # Maintenance and document windows (days)
    maintenance_due_soon_days: int = 7
    document_expiry_warning_days: int = 30

    # Geocoding
    nominatim_url: str = "https://nominatim.openstreetmap.org/search"

    cors_origins: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    @property
    def database_connection_url(self) -> str:
        """Build database URL from individual components or use direct URL"""
        if all([self.db_username, self.db_password, self.db_host, self.db_port, self.db_name]):
            return f"postgresql://{self.db_username}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"
        elif self.database_url:
            return self.database_url
        else:
            return "sqlite:///./allevapp.db"  # Fallback to SQLite

    @property
    def microsoft_configured(self) -> bool:
        return all([
            self.microsoft_tenant_id,
            self.microsoft_client_id,
            self.microsoft_client_secret,
            self.microsoft_sender_email,
        ])

    class Config:
        env_file = ".env"


settings = Settings()
