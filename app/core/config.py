"""
Checklist Server - Configuration
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional
import secrets
from pathlib import Path
from dotenv import load_dotenv

# Carrega .env com override para sobrescrever variáveis do sistema
env_file = Path(__file__).parent.parent.parent / ".env"
if env_file.exists():
    load_dotenv(env_file, override=True)


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Checklist Server"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # Database (accepts DATABASE_URL or CHECKLIST_DATABASE_URL)
    DATABASE_URL: Optional[str] = None
    CHECKLIST_DATABASE_URL: str = "sqlite+aiosqlite:///./checklists.db"

    @property
    def db_url(self) -> str:
        """Returns DATABASE_URL if set, otherwise CHECKLIST_DATABASE_URL"""
        url = self.DATABASE_URL or self.CHECKLIST_DATABASE_URL
        # Heroku/Render ainda entregam postgres://
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql+asyncpg://", 1)
        return url

    # Security
    SECRET_KEY: str = secrets.token_urlsafe(32)
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    PUBLIC_TOKEN_LENGTH: int = 32

    # Superadmin inicial (POST /auth/setup)
    ADMIN_EMAIL: str = "admin@checklist-server.com"
    ADMIN_PASSWORD: str = "change-me-in-production"

    # CORS
    CORS_ORIGINS: list = ["*"]

    # Link público do checklist: {APP_URL}/c/{token}
    APP_URL: str = "http://localhost:3000"

    # Object storage (S3 ou compatível)
    S3_BUCKET: str = "checklist-files"
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT: Optional[str] = None
    S3_ACCESS_KEY: Optional[str] = None
    S3_SECRET_KEY: Optional[str] = None
    S3_READ_URL_EXPIRES: int = 3600
    S3_UPLOAD_URL_EXPIRES: int = 900
    UPLOAD_MAX_SIZE: int = 10 * 1024 * 1024

    # WhatsApp (Evolution API)
    EVOLUTION_API_URL: Optional[str] = None
    EVOLUTION_API_KEY: Optional[str] = None
    EVOLUTION_INSTANCE: Optional[str] = None
    EVOLUTION_TIMEOUT: float = 15.0

    # AI pre-screen (Gemini)
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_API_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    AI_TEMPERATURE: float = 0.2
    AI_TIMEOUT: float = 60.0

    # Rate limiting dos endpoints públicos (/c/{token})
    RATE_LIMIT_ENABLED: bool = True
    PUBLIC_RATE_LIMIT: str = "60/minute"

    # Email Settings (SMTP) - usado pelo notificador de erros
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM_EMAIL: str = "noreply@checklist-server.com"
    SMTP_FROM_NAME: str = "Checklist Server"
    SMTP_TLS: bool = True

    # Notificação de erros críticos
    ERROR_NOTIFICATION_ENABLED: bool = False
    ERROR_NOTIFICATION_EMAIL: str = "dev@checklist-server.com"

    class Config:
        extra = "ignore"
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
