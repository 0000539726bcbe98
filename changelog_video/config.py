"""Application configuration via environment variables."""

from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Provider credentials (server-side only, never copied into job records)
    gemini_api_key: str = ""
    higgsfield_api_key: str = ""
    higgsfield_secret: str = ""

    # Provider endpoints / models
    gemini_text_model: str = "gemini-2.5-flash"
    veo_model: str = "veo-3.0-fast-generate-001"
    higgsfield_api_base: str = "https://platform.higgsfield.ai"

    # Polling budgets (interval x attempts)
    image_poll_interval_seconds: float = 5.0
    image_poll_max_attempts: int = 60
    video_poll_interval_seconds: float = 10.0
    video_poll_max_attempts: int = 60

    # Outbound HTTP
    http_timeout_seconds: float = 60.0

    # Result proxy: origins allowed to receive the provider credential
    result_allowed_hosts: List[str] = [
        "generativelanguage.googleapis.com",
        "storage.googleapis.com",
    ]

    # Server
    environment: str = "development"  # "development" or "production"
    debug: bool = False
    port: int = 3000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def is_development(self) -> bool:
        return self.environment != "production"


settings = Settings()
