from pathlib import Path

from pydantic_settings import BaseSettings

DEFAULT_ROUTES_FILE = Path(__file__).parent / "data" / "routes.json"


class Settings(BaseSettings):
    routes_file: str = str(DEFAULT_ROUTES_FILE)
    reference_timezone: str = "Asia/Kolkata"
    at_stop_radius_km: float = 0.1
    stale_after_seconds: int = 120
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]

    model_config = {"env_prefix": "", "case_sensitive": False}


settings = Settings()
