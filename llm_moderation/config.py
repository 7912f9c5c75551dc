from pathlib import Path
from dotenv import load_dotenv
from pydantic import BaseModel
from typing import Optional
import os

# Load .env file from project root before any setting is read
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(dotenv_path=env_path)

class Settings(BaseModel):
    app_name: str = "LLM Moderation"
    port: int = int(os.getenv("PORT", "3000"))
    gemini_api_key: Optional[str] = os.getenv("GEMINI_API_KEY")
    gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
    gemini_base_url: str = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com")
    cache_backend: str = os.getenv("CACHE_BACKEND", "memory")  # memory|redis
    redis_url: Optional[str] = os.getenv("REDIS_URL")
    cache_ttl_seconds: int = int(os.getenv("CACHE_TTL_SECONDS", "600"))
    max_retries: int = int(os.getenv("MAX_RETRIES", "2"))
    initial_backoff_ms: int = int(os.getenv("INITIAL_BACKOFF_MS", "300"))
    max_backoff_ms: int = int(os.getenv("MAX_BACKOFF_MS", "2500"))
    timeout_ms: int = int(os.getenv("MODERATION_TIMEOUT_MS", "3500"))  # per request, not global
    thresholds_path: Optional[str] = os.getenv("THRESHOLDS_PATH")
    max_payload_kb: int = int(os.getenv("MAX_PAYLOAD_KB", "512"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    cors_origins: str = os.getenv("CORS_ORIGINS", "*")

settings = Settings()
