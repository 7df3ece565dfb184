"""Application settings loaded from environment variables via pydantic-settings.

Settings are read from the following sources (highest priority first):

  1. **Environment variables** -- e.g. ``OPENAI_API_KEY=sk-abc123``
  2. **.env file** -- key=value lines in the project root ``.env`` file
  3. **YAML defaults** -- ``config/config.yaml``, applied by
     :func:`docrag.config.loader.load_settings`
  4. Field defaults below.

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``; pydantic-settings
upper-cases and matches automatically.

One ``Settings`` instance is built at process start and handed to every
provider and service constructor.  Nothing below reads the environment again.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """docrag application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === OpenAI-compatible model services ===
    # Empty key = "not configured"; providers report is_available() False.
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_embedding_model: str = "text-embedding-3-small"
    openai_chat_model: str = "gpt-4o-mini"
    openai_timeout_seconds: float = 30.0

    # === Storage ===
    database_path: str = "data/docrag.db"
    storage_root: str = "data/storage"
    storage_bucket: str = "documents"

    # === Chunking ===
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=100, ge=0)
    min_chunk_length: int = Field(default=50, ge=0)
    boundary_lookback_floor: int = Field(default=100, ge=0)
    tabular_chunk_size: int = Field(default=1500, gt=0)
    slide_chunk_size: int = Field(default=800, gt=0)

    # === Extraction ===
    min_text_length: int = Field(default=10, ge=0)
    legacy_min_run_length: int = Field(default=4, ge=1)
    legacy_min_letter_sequence: int = Field(default=3, ge=1)
    legacy_min_letter_ratio: float = Field(default=0.4, ge=0.0, le=1.0)
    pdf_yield_every_pages: int = Field(default=10, gt=0)

    # === Embedding retry ===
    embedding_max_attempts: int = Field(default=3, ge=1)
    embedding_backoff_base: float = Field(default=2.0, ge=0.0)

    # === Ingestion pacing ===
    embedding_batch_size: int = Field(default=10, gt=0)
    embedding_batch_delay: float = Field(default=0.1, ge=0.0)
    # 0.0 keeps the lenient rule: one stored chunk is enough for "processed".
    min_chunk_success_ratio: float = Field(default=0.0, ge=0.0, le=1.0)

    # === Retrieval / answer composition ===
    match_threshold: float = Field(default=0.7, ge=-1.0, le=1.0)
    chat_match_count: int = Field(default=5, gt=0)
    search_match_count: int = Field(default=20, gt=0)
    chat_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    chat_max_tokens: int = Field(default=1000, gt=0)
    # Empty = answer in the language of the question.
    answer_language: str = ""

    # === Upload ===
    max_upload_bytes: int = Field(default=50 * 1024 * 1024, gt=0)

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    cors_allowed_origins: list[str] = Field(default_factory=lambda: ["*"])

    def get_available_providers(self) -> list[str]:
        """Return the names of model services that have credentials configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        return providers
