"""SharpLog configuration."""

from dataclasses import dataclass, field
from pathlib import Path
import os


@dataclass
class LLMConfig:
    """Text-generation service configuration."""
    provider: str = "openai"                     # "openai" or "gemini"
    turn_model: str = "gpt-4o-mini"              # conversational turns
    summary_model: str = "gpt-4o-mini"           # end-of-conversation summary
    base_url: str | None = None                  # OpenAI-compatible endpoint override
    api_key: str | None = None
    turn_temperature: float = 0.7
    summary_temperature: float = 0.3
    turn_max_tokens: int = 1024
    summary_max_tokens: int = 4096
    ai_timeout_seconds: float = 60.0             # turn + summary calls
    default_timeout_seconds: float = 30.0        # everything else
    max_retries: int = 1                         # retry is user-initiated


# Gemini is reached through its OpenAI-compatible endpoint
GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
GEMINI_DEFAULT_MODEL = "gemini-2.5-flash"


@dataclass
class ConversationConfig:
    """Turn-taking settings."""
    max_exchanges: int = 5
    reset_delay_seconds: float = 1.5             # completed -> idle
    fallback_question: str = (
        "Thanks for sharing! Could you tell me a bit more about what you worked on today?"
    )


@dataclass
class RateLimitConfig:
    """Sliding-window limiter for the HTTP endpoints."""
    max_requests: int = 300
    window_seconds: float = 15 * 60
    enabled: bool = True


@dataclass
class StorageConfig:
    """Where work entries and in-flight conversations live."""
    data_dir: Path = Path("./data")
    database_name: str = "sharplog.db"
    state_dir_name: str = "sessions"
    encryption_secret: str = "sharplog-dev-secret-change-in-prod"

    @property
    def database_path(self) -> Path:
        return Path(self.data_dir) / self.database_name

    @property
    def state_dir(self) -> Path:
        return Path(self.data_dir) / self.state_dir_name


@dataclass
class SharpLogConfig:
    """Top-level configuration."""
    llm: LLMConfig = field(default_factory=LLMConfig)
    conversation: ConversationConfig = field(default_factory=ConversationConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    verbose: bool = True

    def __post_init__(self):
        self.storage.data_dir = Path(self.storage.data_dir)

    @classmethod
    def from_env(cls) -> "SharpLogConfig":
        """Build a config from SHARPLOG_* environment variables."""
        config = cls()
        env = os.environ

        provider = env.get("SHARPLOG_PROVIDER", config.llm.provider).lower()
        config.llm.provider = provider
        if provider == "gemini":
            config.llm.base_url = GEMINI_OPENAI_BASE_URL
            config.llm.api_key = env.get("GOOGLE_AI_API_KEY")
            config.llm.turn_model = GEMINI_DEFAULT_MODEL
            config.llm.summary_model = GEMINI_DEFAULT_MODEL
        else:
            config.llm.api_key = env.get("OPENAI_API_KEY")

        if "SHARPLOG_TURN_MODEL" in env:
            config.llm.turn_model = env["SHARPLOG_TURN_MODEL"]
        if "SHARPLOG_SUMMARY_MODEL" in env:
            config.llm.summary_model = env["SHARPLOG_SUMMARY_MODEL"]
        if "SHARPLOG_AI_TIMEOUT" in env:
            config.llm.ai_timeout_seconds = float(env["SHARPLOG_AI_TIMEOUT"])

        if "SHARPLOG_DATA_DIR" in env:
            config.storage.data_dir = Path(env["SHARPLOG_DATA_DIR"])
        if "SHARPLOG_ENCRYPTION_SECRET" in env:
            config.storage.encryption_secret = env["SHARPLOG_ENCRYPTION_SECRET"]

        if "SHARPLOG_RATE_LIMIT" in env:
            config.rate_limit.max_requests = int(env["SHARPLOG_RATE_LIMIT"])

        return config
