"""Configuration management for the corrdesk engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # Environment variables should be set directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")

    # Embedding providers (all optional; synthetic embeddings are used without them)
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    EMBEDDING_API_URL: str | None = Field(
        default=None, description="Generic embedding endpoint accepting {text, model}"
    )
    EMBEDDING_API_KEY: str | None = Field(
        default=None, description="Bearer token for EMBEDDING_API_URL"
    )

    # Environment
    CORRDESK_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Embedding configuration
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="Embedding model name"
    )
    EMBEDDING_DIM: int = Field(default=1536, description="Embedding vector dimension")
    EMBEDDING_TIMEOUT_SECONDS: float = Field(
        default=10.0, description="Timeout for a single embedding call"
    )

    # Document store
    DOCUMENTS_TABLE: str = Field(default="documents", description="Correspondence table name")
    MATCH_DOCUMENTS_RPC: str = Field(
        default="match_documents", description="pgvector similarity RPC name"
    )
    STORE_PAGE_SIZE: int = Field(default=1000, description="Rows per page for full scans")

    # Hybrid search
    SEARCH_VECTOR_THRESHOLD: float = Field(
        default=0.1, description="Minimum cosine similarity for vector candidates"
    )
    SEARCH_VECTOR_WEIGHT: float = Field(default=0.4, description="Weight of cosine similarity")
    SEARCH_TEXT_WEIGHT: float = Field(default=0.6, description="Weight of lexical score")
    SEARCH_DEFAULT_LIMIT: int = Field(default=50, description="Default result limit")
    SEARCH_MAX_LIMIT: int = Field(default=200, description="Hard cap on result limit")

    # Reference graph and timeline
    TIMELINE_GAP_DAYS: int = Field(default=10, description="Day gap flagged between letters")
    GRAPH_KEEP_SELF_LOOPS: bool = Field(
        default=False, description="Keep edges from a letter citing itself"
    )

    # Vocabulary overrides (JSON file)
    VOCABULARY_PATH: str | None = Field(
        default=None, description="JSON file merged over the built-in vocabulary"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
