"""
Application configuration.

Settings come from environment variables (or a .env file) through Pydantic's
BaseSettings. Malformed or out-of-range values fall back to a usable value
rather than failing startup.
"""
from pydantic import field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict

EVOLUTION_STRATEGIES = ("tree", "first_child")
MAX_MOVE_LIMIT = 12


class Settings(BaseSettings):
    """
    Attributes:
        pokeapi_base_url (str): PokeAPI root, without trailing slash.
        pokeapi_timeout (float): Per-request timeout in seconds.
        pokeapi_retries (int): Extra attempts on network errors and 429/5xx.
        pokeapi_retry_backoff (float): Base delay of the exponential backoff.
        redis_url (str | None): Enables the response cache when set.
        cache_ttl (int): Cache entry lifetime in seconds.
        evolution_strategy (str): 'tree' or 'first_child'.
        move_limit (int): How many moves the detail page fetches (1-12).
        description_language (str): Language code of the description.
        log_level (str): Root logging level.
    """

    pokeapi_base_url: str = "https://pokeapi.co/api/v2"
    pokeapi_timeout: float = 5.0
    pokeapi_retries: int = 0
    pokeapi_retry_backoff: float = 0.5
    redis_url: str | None = None
    cache_ttl: int = 3600  # 1 hour
    evolution_strategy: str = "tree"
    move_limit: int = 4
    description_language: str = "en"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @field_validator(
        "pokeapi_timeout", "pokeapi_retries", "pokeapi_retry_backoff", "cache_ttl", "move_limit",
        mode="before",
    )
    @classmethod
    def default_when_not_numeric(cls, v, info: ValidationInfo):
        numeric = int if cls.model_fields[info.field_name].annotation is int else float
        try:
            return numeric(v)
        except (TypeError, ValueError):
            return cls.model_fields[info.field_name].default

    @field_validator("pokeapi_retries")
    @classmethod
    def non_negative_retries(cls, v: int) -> int:
        return max(0, v)

    @field_validator("pokeapi_retry_backoff")
    @classmethod
    def non_negative_backoff(cls, v: float) -> float:
        return max(0.0, v)

    @field_validator("move_limit")
    @classmethod
    def clamp_move_limit(cls, v: int) -> int:
        return min(MAX_MOVE_LIMIT, max(1, v))

    @field_validator("evolution_strategy", mode="before")
    @classmethod
    def known_strategy(cls, v) -> str:
        strategy = str(v).strip().lower()
        return strategy if strategy in EVOLUTION_STRATEGIES else "tree"

    @field_validator("pokeapi_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("redis_url", mode="before")
    @classmethod
    def blank_redis_url_disables_cache(cls, v):
        return v or None

    @field_validator("log_level")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        return v.upper()


def get_settings() -> Settings:
    """Builds the settings from environment variables, falling back to defaults."""
    return Settings()
