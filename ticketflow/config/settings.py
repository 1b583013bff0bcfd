"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "ticketflow_dev"

    # Mail transport (Graph API service mailbox, ROPC)
    aad_tenant_id: str = ""
    aad_client_id: str = ""
    aad_client_secret: str = ""
    service_mailbox_email: str = ""
    service_mailbox_password: str = ""

    # Attachments
    attachments_max_mb: int = 25
    attachments_base_path: str = "./storage/uploads"
    allowed_mime_types: str = "application/pdf,image/png,image/jpeg,image/gif,application/msword,application/vnd.openxmlformats-officedocument.wordprocessingml.document,application/vnd.ms-excel,application/vnd.openxmlformats-officedocument.spreadsheetml.sheet,text/plain,text/csv,application/octet-stream"

    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"

    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"

    # Frontend URL (for email links)
    frontend_url: str = "http://localhost:3000"

    # Tickets
    ticket_number_prefix: str = "TKT"

    # Notification outbox scheduler
    scheduler_enabled: bool = True
    scheduler_interval_seconds: int = 10
    notification_max_retries: int = 5
    notification_lock_duration_seconds: int = 60
    stale_lock_cleanup_minutes: int = 10

    # Environment
    environment: str = "development"
    debug: bool = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def allowed_mime_types_list(self) -> List[str]:
        """Parse allowed mime types string to list"""
        return [mime.strip() for mime in self.allowed_mime_types.split(",")]

    @property
    def attachments_max_bytes(self) -> int:
        """Max attachment size in bytes"""
        return self.attachments_max_mb * 1024 * 1024

    @property
    def mail_enabled(self) -> bool:
        """Mail is only sent when service mailbox credentials are configured"""
        return bool(self.aad_tenant_id and self.aad_client_id and self.service_mailbox_email)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
