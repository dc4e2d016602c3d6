from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./dev.db"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    SECRET_KEY: str = "change-this-secret"
    FRONTEND_ORIGINS: List[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"
    RESET_DB: bool = False

    CURRENCY: str = "INR"

    # object storage for prescription scans
    STORAGE_DIR: str = "./storage"
    PUBLIC_BASE_URL: str = "http://127.0.0.1:8000"
    SIGNED_URL_TTL_SECONDS: int = 120
    MAX_PRESCRIPTION_BYTES: int = 5 * 1024 * 1024

    # payment gateway (mock, razorpay-shaped)
    PAYMENT_KEY_ID: str = "rzp_test_key"
    PAYMENT_KEY_SECRET: str = "change-this-payment-secret"
    PAYMENT_VERIFY_SIGNATURE: bool = True
    PAYMENT_MOCK_DELAY_MS: int = 0

    # 0 disables the stale payment job
    PENDING_PAYMENT_TTL_SECONDS: int = 86400
    EXPIRY_JOB_INTERVAL_SECONDS: int = 300

    DECREMENT_STOCK_ON_CHECKOUT: bool = False

    NOTIFY_WEBHOOK_URL: Optional[str] = None
    NOTIFY_TIMEOUT_SECONDS: float = 5.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
