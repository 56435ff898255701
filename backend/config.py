# ========================================
# config.py - Service configuration
# ========================================

import os
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ---------- LLM Configuration (Gemini) ----------------------------- #
    llm_api_key: str = ""
    llm_model: str = "gemini-2.0-flash-001"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 6000

    # ---------- Voice Engine (Vapi) ------------------------------------ #
    vapi_api_key: str = ""
    vapi_base_url: str = "https://api.vapi.ai"
    vapi_workflow_id: str = ""
    vapi_server_url: str = ""          # public URL of /vapi/webhook
    vapi_webhook_secret: str = ""
    voice_start_timeout_seconds: float = 30.0
    voice_http_timeout_seconds: float = 15.0

    # ---------- Database ----------------------------------------------- #
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: str = ""

    # ---------- Firebase ----------------------------------------------- #
    firebase_project_id: str = ""
    firebase_credentials_path: str = "serviceAccount.json"

    # ---------- Security ----------------------------------------------- #
    api_token: str = os.getenv("API_TOKEN", "")

    # ---------- CORS --------------------------------------------------- #
    allowed_origins: str = "http://localhost:3000,http://localhost:5173"

    # ---------- Interview Settings ------------------------------------- #
    default_question_amount: int = 5
    latest_interviews_limit: int = 20
    generate_rate_limit_per_minute: int = 10
    session_rate_limit_per_minute: int = 20
    session_ttl_seconds: float = 900.0  # idle/finished sessions older than this are evicted

    # ---------- Logging ------------------------------------------------ #
    log_level: str = "INFO"
    log_format: str = "console"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    return Settings()
