import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel


class ConfigurationError(RuntimeError):
    pass


class Settings(BaseModel):
    database_url: str = "sqlite:///./timecapsule.db"
    secret_key: str
    jwt_algorithm: str = "HS256"
    object_store: str = "local"
    gcs_bucket_name: Optional[str] = None
    media_root: str = "./media"
    media_base_url: str = "http://localhost:8000"
    signed_url_ttl_seconds: int = 30 * 60
    max_upload_bytes: int = 50 * 1024 * 1024
    broker_url: str = "redis://localhost:6379/0"
    cors_origins: List[str] = ["http://localhost:5173"]
    log_level: str = "INFO"


def _env(name: str) -> Optional[str]:
    value = os.environ.get(name)
    if value is None or value == "":
        return None
    return value


def load_settings() -> Settings:
    """Build Settings from the environment (and `.env`, if present).

    Called once at process start; the result is handed to every component.
    """
    load_dotenv()
    secret_key = _env("SECRET_KEY")
    if secret_key is None:
        raise ConfigurationError("SECRET_KEY is not set")

    values = {"secret_key": secret_key}
    for field in Settings.model_fields:
        if field in ("secret_key", "cors_origins"):
            continue
        raw = _env(field.upper())
        if raw is not None:
            values[field] = raw
    origins = _env("CORS_ORIGINS")
    if origins is not None:
        values["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]
    return Settings(**values)
