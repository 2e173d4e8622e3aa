from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    database_url: str = "sqlite:///./eventhub.db"
    secret_key: str = "dev-secret-key-change-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""

    frontend_url: str = "http://localhost:8000"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "testserver"]
    log_level: str = "INFO"

    # Checkout and loyalty rules
    payment_window_hours: int = 2
    reward_rate_percent: int = 5
    point_expiry_months: int = 3
    referral_bonus_points: int = 10000
    welcome_coupon_code: str = "WELCOME2024"

    # Background jobs
    scheduler_enabled: bool = True
    expiry_sweep_interval_seconds: int = 60

    checkout_rate_limit: str = "10/minute"
    auth_rate_limit: str = "5/minute"

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
