"""
Application settings loaded from the environment (and a local .env file)
"""
import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Runtime configuration for the API"""
    app_name: str = field(default_factory=lambda: os.getenv("APP_NAME", "Printshop API"))
    app_version: str = field(default_factory=lambda: os.getenv("APP_VERSION", "1.0.0"))
    database_url: str = field(default_factory=lambda: os.getenv("DATABASE_URL", "sqlite:///./printshop.db"))

    # Auth
    jwt_secret: str = field(default_factory=lambda: os.getenv("JWT_SECRET", "change-me"))
    jwt_algorithm: str = "HS256"
    customer_token_days: int = field(default_factory=lambda: int(os.getenv("CUSTOMER_TOKEN_DAYS", "7")))
    admin_token_hours: int = field(default_factory=lambda: int(os.getenv("ADMIN_TOKEN_HOURS", "24")))

    # CORS
    allowed_origins: List[str] = field(default_factory=lambda: _env_list("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:3001"))
    allowed_methods: List[str] = field(default_factory=lambda: _env_list("ALLOWED_METHODS", "GET,POST,PUT,PATCH,DELETE"))

    # Razorpay
    razorpay_key_id: str = field(default_factory=lambda: os.getenv("RAZORPAY_KEY_ID", ""))
    razorpay_key_secret: str = field(default_factory=lambda: os.getenv("RAZORPAY_KEY_SECRET", ""))
    razorpay_webhook_secret: str = field(default_factory=lambda: os.getenv("RAZORPAY_WEBHOOK_SECRET", ""))
    currency: str = field(default_factory=lambda: os.getenv("CURRENCY", "INR"))

    # Object storage (S3 or any S3-compatible endpoint such as MinIO)
    s3_endpoint: str = field(default_factory=lambda: os.getenv("S3_ENDPOINT", "s3.amazonaws.com"))
    s3_access_key: str = field(default_factory=lambda: os.getenv("S3_ACCESS_KEY", ""))
    s3_secret_key: str = field(default_factory=lambda: os.getenv("S3_SECRET_KEY", ""))
    s3_bucket: str = field(default_factory=lambda: os.getenv("S3_BUCKET", ""))
    s3_region: str = field(default_factory=lambda: os.getenv("S3_REGION", "us-east-1"))
    s3_secure: bool = field(default_factory=lambda: _env_bool("S3_SECURE", True))
    s3_images_folder: str = field(default_factory=lambda: os.getenv("S3_IMAGES_FOLDER", "images"))
    s3_orders_folder: str = field(default_factory=lambda: os.getenv("S3_ORDERS_FILE_FOLDER", "orders-file"))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_dir: str = field(default_factory=lambda: os.getenv("LOG_DIR", ""))

    @property
    def razorpay_configured(self) -> bool:
        return bool(self.razorpay_key_id and self.razorpay_key_secret)

    @property
    def storage_configured(self) -> bool:
        return bool(self.s3_bucket and self.s3_access_key and self.s3_secret_key)


settings = Settings()
