"""Configuration management for the Advice Personalization Engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
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

    # OpenAI configuration (required)
    OPENAI_API_KEY: str = Field(..., description="OpenAI API key")

    # Environment
    ENGINE_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Embedding configuration
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    EMBEDDING_DIM: int = Field(default=1536, description="Embedding vector dimension")

    # Content storage
    ACTION_STEPS_TABLE: str = Field(
        default="agent_action_steps", description="Table holding authored action steps"
    )
    AGENT_ADVICE_TABLE: str = Field(
        default="agent_advice", description="Table holding authored advice and stories"
    )
    AGENT_CONFIG_TABLE: str = Field(
        default="agent_configs", description="Table holding per-agent phases and story mappings"
    )
    ADVICE_MATCH_RPC: str = Field(
        default="match_agent_advice", description="pgvector RPC for advice similarity search"
    )

    # Retrieval limits
    ACTION_STEP_FETCH_LIMIT: int = Field(
        default=100, description="Max action step documents fetched per request"
    )
    DEFAULT_ACTION_STEP_LIMIT: int = Field(default=5, description="Action steps returned by default")
    DEFAULT_ADVICE_TOP_K: int = Field(default=5, description="Advice items returned by default")
    ADVICE_OVERFETCH_FACTOR: int = Field(
        default=3, description="Neighbours requested per advice slot, leaving room for the rule gate"
    )

    # Collaborator calls (embeddings, vector search)
    COLLABORATOR_TIMEOUT_SECONDS: float = Field(
        default=10.0, description="Timeout for embedding and vector search calls"
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
