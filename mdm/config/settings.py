"""
Environment configuration for the MDM governance core.
Uses Pydantic's settings management to handle environment variables
with proper type validation and default values.
"""

from functools import lru_cache
from pathlib import Path
import json
from typing import Annotated, List, Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode

# Load environment variables from .env file if it exists
env_path = Path('.') / '.env'
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    APP_NAME: str = "MDM Governance"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "text"
    ENABLE_STRUCTURED_LOGGING: bool = True

    # Persistence provider
    PERSISTENCE_BACKEND: Literal["memory", "sqlalchemy"] = "memory"
    DATABASE_URL: str = "sqlite:///./data/mdm.db"
    DATABASE_ECHO: bool = False

    # Approval routing when no rule triggers for a submission
    APPROVAL_FALLBACK_POLICY: Literal["fail_closed", "default_group"] = "default_group"
    DEFAULT_APPROVER_IDS: Annotated[List[str], NoDecode] = Field(default_factory=list)
    DEFAULT_APPROVER_ROLES: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["Checker", "Admin"])

    # Decision checks
    ENFORCE_APPROVER_ASSIGNMENT: bool = True
    ALLOW_SELF_APPROVAL: bool = False

    # Referential integrity
    HIERARCHY_DELETE_POLICY: Literal["reject", "orphan", "cascade"] = "reject"
    BLOCK_DELETE_WHILE_PENDING: bool = True

    # Dashboard
    RECENT_REQUESTS_LIMIT: int = Field(default=5, ge=0)

    model_config = {
        "env_prefix": "MDM_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator('DEFAULT_APPROVER_IDS', 'DEFAULT_APPROVER_ROLES', mode='before')
    @classmethod
    def parse_comma_list(cls, v):
        """Accept comma separated strings as well as JSON lists"""
        if isinstance(v, str) and v.strip().startswith("["):
            return json.loads(v)
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator('LOG_LEVEL')
    @classmethod
    def normalise_log_level(cls, v: str) -> str:
        return v.upper()

    def uses_database(self) -> bool:
        return self.PERSISTENCE_BACKEND == "sqlalchemy"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()

