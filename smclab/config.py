from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # Web server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000", "*"]

    # Logging
    log_level: str = "INFO"
    log_file: str = "data/smclab.log"
    log_rotation: str = "10 MB"
    log_retention: str = "7 days"

    # Request limits
    upload_max_mb: int = Field(20, ge=1)
    max_candles: int = Field(50_000, ge=1)  # per analysis request

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def api_url(self) -> str:
        return f"http://{self.api_host}:{self.api_port}"


settings = Settings()
