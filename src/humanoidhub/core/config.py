"""Configuration management for Humanoid Hub."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

    ENV: str = "local"
    SERVICE_NAME: str = "humanoid-hub"
    SERVICE_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # Backend selection
    RECORD_BACKEND: str = "memory"  # "memory" or "supabase"
    STORAGE_BACKEND: str = "local"  # "local", "gcs" or "supabase"

    # Hosted backend (Supabase-compatible REST API)
    SUPABASE_URL: str = ""
    SUPABASE_SECRET_KEY: str = ""
    SUPABASE_STORAGE_BUCKET: str = "model-files"
    REQUEST_TIMEOUT: int = 30  # seconds for backend calls

    # GCP Configuration
    GCP_PROJECT_ID: str = ""
    GCS_BUCKET_NAME: str = ""

    # Local storage
    LOCAL_STORAGE_PATH: str = "data/objects"

    # Catalog
    MODELS_TABLE: str = "models"
    USERS_TABLE: str = "users"
    DEFAULT_MODEL_VISIBILITY_PUBLIC: bool = True

    # Upload Constraints
    MAX_UPLOAD_MB: int = 2048
    UPLOAD_CHUNK_SIZE_KB: int = 256

    @property
    def max_upload_bytes(self) -> int:
        """Convert MAX_UPLOAD_MB to bytes."""
        return self.MAX_UPLOAD_MB * 1024 * 1024

    @property
    def upload_chunk_size_bytes(self) -> int:
        """Convert UPLOAD_CHUNK_SIZE_KB to bytes."""
        return self.UPLOAD_CHUNK_SIZE_KB * 1024

    @property
    def supabase_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_SECRET_KEY)


# Singleton settings instance
settings = Settings()
