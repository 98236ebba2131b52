# clinic/core/config.py
import os
from typing import List, Optional
from pydantic import BaseModel
from dotenv import load_dotenv
from urllib.parse import quote_plus

load_dotenv()


def _split_csv(value: str) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


class Settings(BaseModel):
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "Clinic Management API")
    API_V1_STR: str = os.getenv("API_V1_STR", "/api")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # CORS (env takes priority)
    BACKEND_CORS_ORIGINS: List[str] = _split_csv(
        os.getenv(
            "CORS_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ))

    # ---------- Database ----------
    MYSQL_HOST: str = os.getenv("MYSQL_HOST", "localhost")
    MYSQL_PORT: int = int(os.getenv("MYSQL_PORT", "3306"))
    MYSQL_USER: str = os.getenv("MYSQL_USER", "clinic_user")
    MYSQL_PASSWORD: str = os.getenv("MYSQL_PASSWORD", "clinic")
    MYSQL_DB: str = os.getenv("MYSQL_DB", "clinic_management")
    DB_DRIVER: str = os.getenv("DB_DRIVER", "pymysql")

    # Full URL override (sqlite for local runs and tests)
    DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL") or None

    SQLALCHEMY_DATABASE_URI: str = DATABASE_URL or (
        f"mysql+{DB_DRIVER}://{quote_plus(MYSQL_USER)}:{quote_plus(MYSQL_PASSWORD)}"
        f"@{MYSQL_HOST}:{MYSQL_PORT}/{MYSQL_DB}?charset=utf8mb4")

    AUTO_CREATE_TABLES: bool = _flag("AUTO_CREATE_TABLES")

    # ---------- Security ----------
    JWT_SECRET: str = os.getenv("JWT_SECRET", "change-this")
    JWT_ALG: str = os.getenv("JWT_ALG", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(
        os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(7 * 24 * 60)))
    REFRESH_TOKEN_EXPIRE_MINUTES: int = int(
        os.getenv("REFRESH_TOKEN_EXPIRE_MINUTES", str(30 * 24 * 60)))
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # ---------- Clinic ----------
    LOCAL_TZ: str = os.getenv("LOCAL_TZ", "Asia/Ho_Chi_Minh")
    CLINIC_NAME: str = os.getenv("CLINIC_NAME", "Clinic")
    CLINIC_ADDRESS: str = os.getenv("CLINIC_ADDRESS", "")
    CLINIC_PHONE: str = os.getenv("CLINIC_PHONE", "")

    # ---------- Listing ----------
    DEFAULT_PAGE_SIZE: int = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
    MAX_PAGE_SIZE: int = int(os.getenv("MAX_PAGE_SIZE", "100"))

    # ---------- Pharmacy / inventory ----------
    PRESCRIPTION_VALID_DAYS: int = int(
        os.getenv("PRESCRIPTION_VALID_DAYS", "30"))
    EXPIRY_WARNING_DAYS: int = int(os.getenv("EXPIRY_WARNING_DAYS", "30"))
    DEFAULT_MIN_STOCK: int = int(os.getenv("DEFAULT_MIN_STOCK", "10"))


settings = Settings()
