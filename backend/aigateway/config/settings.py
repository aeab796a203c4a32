"""
Configuration Settings.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = "AI Gateway"
    app_version: str = "1.0.0"
    debug: bool = True

    # Storage
    local_storage_path: str = "./data"

    # Upstream inference service
    inference_base_url: str = "http://localhost:8000"
    inference_mode: str = "parallel"  # parallel, simple, llm_integrated
    inference_timeout_seconds: float = 30.0  # bounds the whole call, retries included
    inference_retry_max_attempts: int = 3
    inference_retry_backoff_seconds: float = 1.0
    inference_retry_max_backoff_seconds: float = 8.0
    inference_health_timeout_seconds: float = 5.0
    inference_service_name: str = "Smart-RAG Chat"

    # Circuit breaker
    circuit_failure_rate_threshold: float = 50.0  # percent
    circuit_sliding_window_size: int = 10
    circuit_minimum_calls: int = 5
    circuit_open_wait_seconds: float = 30.0
    circuit_half_open_permitted_calls: int = 1

    # Cache
    response_cache_ttl_seconds: int = 60 * 5  # 5 minutes
    session_cache_ttl_seconds: int = 60 * 10  # 10 minutes

    # Sessions
    default_max_context_window: int = 10  # user/assistant pairs
    context_token_budget: int = 4000
    session_expiry_hours: int = 24
    session_cleanup_enabled: bool = True
    session_cleanup_interval_seconds: float = 60 * 60  # 1 hour

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:8080",
        "http://127.0.0.1:3000",
    ]

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/aigateway.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_json_format: bool = True  # JSON format for files, human-readable for console
    log_api_requests: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
