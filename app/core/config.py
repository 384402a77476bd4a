from pydantic_settings import BaseSettings
from typing import Optional
import os


class Settings(BaseSettings):
    # Environment configuration
    environment: str = os.getenv("ENVIRONMENT", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Database configuration (SQLAlchemy async URL, e.g. postgresql+asyncpg://...)
    database_url: Optional[str] = os.getenv("DATABASE_URL", "")
    database_echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"

    # Frontend URL (for CORS and checkout redirects)
    frontend_url: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

    # JWT configuration (tenant_id claim identifies the caller)
    jwt_secret_key: str = os.getenv("JWT_SECRET_KEY", "your-secret-key-change-this")
    jwt_algorithm: str = "HS256"

    # Plan catalog
    plan_catalog_path: Optional[str] = os.getenv("PLAN_CATALOG_PATH")
    trial_plan_id: str = os.getenv("TRIAL_PLAN_ID", "trial")

    # Payment channel configuration: "upi" or "stripe"
    payment_channel: str = os.getenv("PAYMENT_CHANNEL", "upi")
    currency: str = os.getenv("CURRENCY", "INR")
    upi_vpa: str = os.getenv("UPI_VPA", "merchant@upi")
    upi_payee_name: str = os.getenv("UPI_PAYEE_NAME", "Billing")
    stripe_secret: Optional[str] = os.getenv("STRIPE_SECRET")
    stripe_webhook_secret: Optional[str] = os.getenv("STRIPE_WEBHOOK_SECRET")

    # Reconciliation retry budget for transient database errors
    reconcile_max_attempts: int = int(os.getenv("RECONCILE_MAX_ATTEMPTS", "3"))
    reconcile_retry_delay_seconds: float = float(os.getenv("RECONCILE_RETRY_DELAY_SECONDS", "0.2"))

    # Client-side verification polling
    poll_interval_seconds: float = float(os.getenv("POLL_INTERVAL_SECONDS", "5"))
    poll_max_attempts: int = int(os.getenv("POLL_MAX_ATTEMPTS", "5"))

    class Config:
        env_file = ".env"


settings = Settings()
