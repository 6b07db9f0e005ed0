"""
Mentor API Configuration
========================

PURPOSE:
    Pydantic-Settings based configuration for the mentor feedback service.
    All settings can be overridden via environment variables (MENTOR_ prefix).

    Only the wiring layer (app.main / app.container) reads the module-level
    ``settings`` object; services receive their collaborators explicitly.
"""

from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "mentor-api"
    host: str = "0.0.0.0"
    port: int = 8080

    # Dapr sidecar. The database is only reachable through the output binding,
    # which reads its connection string from a secret the app never sees.
    dapr_host: str = "localhost"
    dapr_http_port: int = 3500
    dapr_api_token: Optional[str] = None  # sent as dapr-api-token when set
    db_binding_name: str = "mentor-db"
    binding_timeout_s: float = 5.0

    # Feedback analysis
    classifier: Literal["keyword", "neutral"] = "keyword"
    feedback_history_max_limit: int = 100

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_to_file: bool = True

    class Config:
        env_file = ".env"
        env_prefix = "MENTOR_"

    @property
    def dapr_base_url(self) -> str:
        return f"http://{self.dapr_host}:{self.dapr_http_port}"


settings = Settings()
