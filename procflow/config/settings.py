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
    mongo_db: str = "procflow_dev"

    # Storage backend: "mongo" or "memory" (memory is for local runs and tests)
    repository_backend: str = "mongo"

    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"

    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"

    # Authorization
    super_role: str = "Admin"  # Role that bypasses every allowed_roles check

    # SLA
    sla_at_risk_hours: int = 24  # Deadline closer than this is "atrisk"

    # Execution
    process_lock_timeout_seconds: float = 10.0
    bulk_action_limit: int = 100
    notifications_enabled: bool = True

    # Environment
    environment: str = "development"
    debug: bool = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def uses_memory_backend(self) -> bool:
        """Check if repositories are kept in process memory"""
        return self.repository_backend.lower() == "memory"

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
