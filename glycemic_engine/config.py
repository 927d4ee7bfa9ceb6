"""Engine configuration using Pydantic Settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables (GLYCEMIC_ prefix)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GLYCEMIC_",
        extra="ignore",
    )

    # Logging
    log_format: str = "json"  # 'json' or 'text'
    log_level: str = "INFO"
    service_name: str = "glycemic-engine"

    # Fallback profile, used when no profile data is loaded
    default_carbs_hr: float = Field(default=30.0, gt=0)  # g/hour absorption
    default_sensitivity: float = 95.0  # mg/dL per unit
    default_carb_ratio: float = 18.0  # g per unit
    default_dia: float = 3.0  # hours
    default_basal: float = 0.0  # U/hour; 0 disables temp basal sizing
    default_target_low: float = 0.0
    default_target_high: float = 0.0

    # Bolus wizard preview
    bwp_recent_carbs_window_minutes: int = 30
    bwp_snooze: float = 0.10  # U, suppress high alarms above this estimate
    bwp_warn: float = 0.50
    bwp_urgent: float = 1.00
    bwp_snooze_length_minutes: int = 30

    # COB from device status
    cob_device_status_max_age_minutes: int = 30


settings = Settings()
