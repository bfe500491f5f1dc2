"""
Configuration settings for the DIDATTIKA platform.
"""
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application Configuration
    app_name: str = "DIDATTIKA"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    log_dir: str = "./logs"

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000

    # Identity (supplied by the auth collaborator in production)
    default_user_id: str = "current-user"
    default_teacher_id: str = "current-teacher"

    # File Storage
    upload_dir: str = "./data/uploads"
    max_file_size: int = Field(default=10 * 1024 * 1024, gt=0)
    max_request_size: int = 100 * 1024 * 1024

    # Document Processing
    processing_delay: float = Field(default=1.0, ge=0.0)
    processing_timeout: float = Field(default=60.0, gt=0.0)
    summary_max_sentences: int = 3

    # Chat
    chat_max_message_length: int = 1000
    document_context_chars: int = 2000
    response_delay_min: float = Field(default=0.8, ge=0.0)
    response_delay_max: float = Field(default=2.2, ge=0.0)
    ai_timeout: float = Field(default=30.0, gt=0.0)

    # OpenAI API Configuration
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4"

    # Content Analysis
    max_tags_per_document: int = Field(default=15, ge=1, le=20)

    # Teacher Dashboard
    recent_upload_days: int = 7


# Global settings instance
settings = Settings()

def get_settings() -> Settings:
    """Return the global settings instance."""
    return settings
