"""Application configuration via Pydantic settings."""

from functools import lru_cache
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ROOT_DIR = Path(__file__).resolve().parents[3]
ENV_FILE = ROOT_DIR / ".env"


class AppSettings(BaseSettings):
    """Global application configuration."""

    environment: str = Field(default="development")
    log_level: str = Field(alias="LOG_LEVEL", default="INFO")
    log_json: bool = Field(alias="LOG_JSON", default=False)

    llm_provider: str = Field(alias="LLM_PROVIDER", default="ollama")
    ollama_url: str = Field(alias="OLLAMA_URL", default="http://localhost:11434")
    openai_base_url: str | None = Field(alias="OPENAI_BASE_URL", default=None)
    llm_api_keys: str = Field(alias="LLM_API_KEYS", default="")
    smart_model: str = Field(alias="SMART_MODEL", default="qwen2.5vl:72b")
    fast_model: str = Field(alias="FAST_MODEL", default="qwen2.5vl:7b")

    # Yuan per 1000 characters.
    smart_input_price_per_1k: float = Field(default=0.0125)
    smart_output_price_per_1k: float = Field(default=0.0250)
    fast_input_price_per_1k: float = Field(default=0.0025)
    fast_output_price_per_1k: float = Field(default=0.0050)

    max_retries: int = Field(alias="MAX_RETRIES", default=5)
    initial_backoff_ms: int = Field(alias="INITIAL_BACKOFF_MS", default=5000)
    backoff_jitter_ms: int = Field(default=1000)
    request_timeout_ms: int = Field(alias="REQUEST_TIMEOUT_MS", default=150000)
    rotation_delay_ms: int = Field(default=1000)
    reset_attempts_on_downgrade: bool = Field(default=True)

    extraction_strategy: str = Field(alias="EXTRACTION_STRATEGY", default="vision")
    max_file_size_mb: int = Field(default=10)
    max_pages: int = Field(alias="MAX_PAGES", default=50)
    pages_per_chunk: int = Field(alias="PAGES_PER_CHUNK", default=5)
    render_scale: float = Field(default=2.5)
    jpeg_quality: int = Field(default=85)
    margin_ratio: float = Field(default=0.08)

    abstract_char_limit: int = Field(alias="ABSTRACT_CHAR_LIMIT", default=300)

    mongodb_uri: str = Field(alias="DATABASE_HOST", default="localhost:27017")
    mongodb_user: str = Field(alias="DATABASE_USER", default="")
    mongodb_password: str = Field(alias="DATABASE_PASSWORD", default="")
    mongo_database: str = Field(default="patent_qc")
    history_collection: str = Field(default="formal_check_history")
    history_limit: int = Field(default=50)

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        extra="ignore",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )

    @property
    def credentials(self) -> list[str]:
        """API keys in configuration order, blanks dropped."""
        return [key.strip() for key in self.llm_api_keys.split(",") if key.strip()]

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    def snapshot(self) -> dict[str, Any]:
        """Return a sanitized dictionary of public settings."""
        return {
            "environment": self.environment,
            "llm_provider": self.llm_provider,
            "smart_model": self.smart_model,
            "fast_model": self.fast_model,
            "credential_count": len(self.credentials),
            "extraction_strategy": self.extraction_strategy,
            "max_pages": self.max_pages,
            "pages_per_chunk": self.pages_per_chunk,
            "max_retries": self.max_retries,
            "request_timeout_ms": self.request_timeout_ms,
            "mongodb_host": self.sanitize_uri(self.mongodb_uri),
        }

    @staticmethod
    def sanitize_uri(uri: str) -> str:
        """Remove credentials from connection URIs for public display."""
        parsed = urlparse(uri)
        netloc = parsed.netloc.split("@")[-1] if parsed.netloc else uri
        return f"{parsed.scheme}://{netloc}" if parsed.scheme else netloc


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Load settings once per process."""
    return AppSettings()
