# eastlink/core/config.py
import os
from urllib.parse import quote_plus

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _build_mongo_uri() -> str:
    uri = os.getenv("MONGODB_URI")
    if uri:
        return uri
    user = os.getenv("MONGO_USER")
    password = os.getenv("MONGO_PASSWORD")
    cluster = os.getenv("MONGO_CLUSTER_URL")  # e.g. eastlink.xxxxx.mongodb.net
    if user and password and cluster:
        return (
            f"mongodb+srv://{quote_plus(user)}:{quote_plus(password)}@{cluster}"
            "/?retryWrites=true&w=majority&appName=eastlink"
        )
    return "mongodb://localhost:27017"


class Settings:
    APP_NAME: str = os.getenv("APP_NAME", "EastLink Market API")
    APP_VERSION: str = os.getenv("APP_VERSION", "1.0.0")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    MONGODB_URI: str = _build_mongo_uri()
    MONGO_DB_NAME: str = os.getenv("MONGO_DB_NAME", "eastlink-market")

    SECRET_KEY: str = os.getenv("SECRET_KEY", "supersecretkey")
    ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))  # 7 days
    RESET_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("RESET_TOKEN_EXPIRE_MINUTES", "60"))

    CLIENT_URL: str = os.getenv("CLIENT_URL", "http://localhost:5173")
    CORS_ORIGINS: list = [
        origin.strip() for origin in os.getenv("CORS_ORIGINS", "").split(",") if origin.strip()
    ]

    RATE_LIMIT_WINDOW_SECONDS: int = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", str(15 * 60)))
    RATE_LIMIT_MAX_REQUESTS: int = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100"))
    AUTH_RATE_LIMIT_MAX: int = int(os.getenv("AUTH_RATE_LIMIT_MAX", "5"))
    MAX_REQUEST_BYTES: int = int(os.getenv("MAX_REQUEST_BYTES", str(10 * 1024 * 1024)))

    SMTP_HOST: str = os.getenv("SMTP_HOST", "")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USER: str = os.getenv("SMTP_USER", "")
    SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "no-reply@eastlinkmarket.et")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "DEBUG" if ENVIRONMENT == "development" else "WARNING")
    LOG_DIR: str = os.getenv("LOG_DIR", "logs")
    LOG_TO_FILE: bool = _env_bool("LOG_TO_FILE", True)

    LOW_STOCK_THRESHOLD: int = int(os.getenv("LOW_STOCK_THRESHOLD", "5"))
    AGENT_FEE_SHARE: float = float(os.getenv("AGENT_FEE_SHARE", "0.8"))
    DELIVERY_FEES: dict = {"Harar": 50, "Dire Dawa": 75, "Hararge": 100}
    DEFAULT_DELIVERY_FEE: int = 100

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def allowed_origins(self) -> list:
        defaults = [self.CLIENT_URL, "http://localhost:3000", "http://localhost:5173"]
        return list(dict.fromkeys(o for o in defaults + self.CORS_ORIGINS if o))


settings = Settings()
