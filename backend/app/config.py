# app/config.py
import os
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Settings(BaseModel):
    # General app settings
    APP_NAME: str = os.getenv("APP_NAME", "Tenant License Service API")
    env: str = os.getenv("ENV", "dev")

    # Host & Port settings
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8000"))

    # CORS origins for frontend (comma separated in env)
    CORS_ORIGINS: list[str] = [
        o.strip()
        for o in os.getenv(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if o.strip()
    ]

    # Session cookie
    # The cookie carries a signed reference to a server-side session row, nothing else
    session_secret: str = os.getenv("SESSION_SECRET", "dev-session-secret")  # Use a strong secret in production
    session_cookie_name: str = os.getenv("SESSION_COOKIE_NAME", "sid")
    session_cookie_secure: bool = _env_bool("SESSION_COOKIE_SECURE", "false")
    session_expire_minutes: int = int(os.getenv("SESSION_EXPIRE_MINUTES", "1440"))

    # Video storage
    video_storage_dir: str = os.getenv("VIDEO_STORAGE_DIR", "storage/videos")
    max_file_size_bytes: int = int(os.getenv("MAX_FILE_SIZE_MB", "500")) * 1024 * 1024

    # Licensing defaults
    license_token_prefix: str = os.getenv("LICENSE_TOKEN_PREFIX", "LIC")
    default_max_storage_bytes: int = int(os.getenv("DEFAULT_MAX_STORAGE_BYTES", "524288000"))  # 500MB
    default_license_days: int = int(os.getenv("DEFAULT_LICENSE_DAYS", "365"))


settings = Settings()  # Instantiate configuration
