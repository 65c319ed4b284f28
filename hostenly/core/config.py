"""Configuration management for Hostenly."""

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

    # OpenAI configuration (required)
    OPENAI_API_KEY: str = Field(..., description="OpenAI API key")

    # Environment
    HOSTENLY_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Embedding configuration
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    EMBEDDING_DIM: int = Field(default=1536, description="Embedding vector dimension")

    # Guest reply generation
    CHAT_MODEL: str = Field(default="gpt-4o-mini", description="Model for guest replies")
    CHAT_MAX_TOKENS: int = Field(default=500, description="Max tokens per guest reply")
    CHAT_TEMPERATURE: float = Field(default=0.7, description="Sampling temperature for replies")

    # Grounding
    RETRIEVAL_TOP_K: int = Field(default=3, description="Knowledge chunks per guest message")
    RETRIEVAL_MIN_SIMILARITY: float = Field(
        default=0.6, description="Minimum cosine similarity for a chunk to be used"
    )
    HISTORY_MAX_TURNS: int = Field(
        default=10, description="Conversation turns rendered into the prompt"
    )
    DOCUMENT_CHUNK_CHARS: int = Field(
        default=1000, description="Max chars per knowledge chunk cut from a document"
    )

    # Twilio (WhatsApp) transport
    TWILIO_ACCOUNT_SID: str = Field(default="", description="Twilio account SID")
    TWILIO_AUTH_TOKEN: str = Field(default="", description="Twilio auth token")
    TWILIO_API_BASE: str = Field(
        default="https://api.twilio.com/2010-04-01", description="Twilio REST API base URL"
    )
    TWILIO_TIMEOUT_SECONDS: float = Field(default=15.0, description="Twilio request timeout")

    # QR codes
    QR_CODE_SIZE: int = Field(default=300, description="QR code edge length in pixels")

    # Host API rate limiting (per client IP)
    RATE_LIMIT_REQUESTS: int = Field(
        default=100, description="Requests allowed per client within one window"
    )
    RATE_LIMIT_WINDOW_SECONDS: int = Field(
        default=900, description="Rate limit window length in seconds"
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
