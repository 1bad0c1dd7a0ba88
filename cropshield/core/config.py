"""Application configuration loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./cropshield.db"

    # Policy terms
    protocol_fee_bps: int = 500  # 5% of each premium goes to the treasury
    min_policy_duration: int = 1000  # heights
    default_reserve_ratio_bps: int = 7000
    max_frost_threshold: int = 30  # °C

    # Identifier bounds
    max_location_length: int = 64
    max_crop_type_length: int = 32
    max_oracle_name_length: int = 64

    # Cross-confirmation tolerances (strict <)
    rainfall_tolerance_mm: int = 5
    temperature_tolerance_c: int = 2
    humidity_tolerance_pct: int = 5

    # Well-known accounts
    custody_address: str = "cropshield.custody"
    treasury_address: str = "cropshield.treasury"

    # Evaluate every policy at a location as soon as an observation lands there
    evaluate_on_record: bool = True

    genesis_height: int = 0

    settlement_hash_algorithm: str = "sha256"

    admin_secret: str = "changeme-admin-secret"

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
