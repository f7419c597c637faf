"""
Configuration management for the Care Consent engine
Review cycle, persistence and logging settings
"""

from pydantic_settings import BaseSettings
from pydantic import Field

from .constants import PolicyDefaults


class ConsentConfig(BaseSettings):
    """Consent engine configuration settings"""

    # Review cycle
    review_interval_days: int = Field(
        default=PolicyDefaults.REVIEW_INTERVAL_DAYS,
        description="Age in days after which an active consent is flagged for review"
    )

    # Persistence
    storage_key_prefix: str = Field(default="care_consent_preferences")
    database_url: str = Field(default="sqlite:///consent.db")

    # Environment-specific overrides
    debug_mode: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    model_config = {"env_prefix": "CARE_CONSENT_", "case_sensitive": False}

    def storage_key_for(self, user_id: str) -> str:
        """Storage key of the preferences blob for one user"""
        return f"{self.storage_key_prefix}:{user_id}"


# Global configuration instance
consent_config = ConsentConfig()


def get_consent_config() -> ConsentConfig:
    """Get the global consent configuration instance"""
    return consent_config


def update_consent_config(**kwargs) -> ConsentConfig:
    """Update consent configuration with new values"""
    global consent_config
    for key, value in kwargs.items():
        if hasattr(consent_config, key):
            setattr(consent_config, key, value)
    return consent_config
