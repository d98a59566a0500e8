"""
Application-wide settings using pydantic-settings.
All runtime env access in journal_digest/ should go through this module.
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[2]
ENV_PATH = PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    LOG_DIR: str = "./logs"
    LOG_FILE_NAME: str = "journal_digest.debug.log"
    LOG_FILE_ENABLED: bool = True
    LOG_FILE_WHEN: str = "midnight"
    LOG_FILE_INTERVAL: int = 1
    LOG_FILE_BACKUP_COUNT: int = 7
    LOG_FILE_ENCODING: str = "utf-8"
    LOG_FILE_LEVEL: str = "DEBUG"
    STAGE_LOG_TRUNCATE: int = 600

    # Global LLM settings
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = ""
    OPENAI_MAX_TOKENS: int = 1000
    OLLAMA_BASE_URL: str = "http://localhost:11434"

    # Summarizer model
    SUMMARIZER_PROVIDER: str = ""
    SUMMARIZER_MODEL: str = ""
    SUMMARIZER_TEMPERATURE: float = 0.3

    # Summary generation limits
    SUMMARY_TIMEOUT_SECONDS: float = 45.0
    SUMMARY_MAX_INPUT_CHARS: int = 1500
    SUMMARY_MAX_TITLE_CHARS: int = 200
    SUMMARY_MIN_CONTENT_CHARS: int = 10
    COMBINED_MAX_INPUT_CHARS: int = 6000

    # Rate limits (requests per window, window in seconds)
    RATE_LIMIT_SUMMARY_MAX: int = 10
    RATE_LIMIT_SUMMARY_WINDOW: float = 60.0
    RATE_LIMIT_COMBINED_MAX: int = 5
    RATE_LIMIT_COMBINED_WINDOW: float = 300.0
    RATE_LIMIT_DIGEST_ENTRY_MAX: int = 60
    RATE_LIMIT_DIGEST_ENTRY_WINDOW: float = 60.0
    RATE_LIMIT_MAX_KEYS: int = 500

    # Audit
    AUDIT_LOG_ENABLED: bool = True

    model_config = SettingsConfigDict(
        env_file=ENV_PATH,
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    def _agent_value(self, agent_key: str, suffix: str) -> str:
        key = (agent_key or "").strip().upper()
        if not key:
            return ""
        return str(getattr(self, f"{key}_{suffix}", "") or "").strip()

    def get_agent_model(self, agent_key: str, default_model: str) -> str:
        return self._agent_value(agent_key, "MODEL") or default_model

    def get_agent_provider(self, agent_key: str) -> str:
        return self._agent_value(agent_key, "PROVIDER")

    def get_agent_base_url(self, agent_key: str, provider_hint: str = "") -> str:
        _ = agent_key
        hint = (provider_hint or "").strip().lower()
        if hint == "ollama":
            return self.OLLAMA_BASE_URL
        return self.OPENAI_BASE_URL

    def has_openai_like_creds(self, agent_key: str) -> bool:
        _ = agent_key
        return bool(self.OPENAI_API_KEY.strip())


settings = Settings()
