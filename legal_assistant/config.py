"""
Configuration settings for the Legal Assistant backend.
Loads environment variables and provides application-wide settings.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Completion provider (Ollama-compatible /api/generate)
    # An empty OLLAMA_BASE_URL means "not configured": every analysis falls
    # back to the rule-based analyzer.
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_LLM_MODEL: str = "mistral:7b-instruct"
    OLLAMA_API_KEY: str = ""  # sent as a Bearer token when set
    LLM_TIMEOUT: float = 120.0  # seconds; a hung provider degrades to fallback

    # Sampling defaults
    LLM_MAX_TOKENS: int = 2000
    LLM_TEMPERATURE: float = 0.7
    LLM_TOP_P: float = 0.9

    # Application Settings
    UPLOAD_DIR: str = "./uploads"
    MAX_PROMPT_DOCUMENT_CHARS: int = 20000

    # Chat
    CHAT_HISTORY_LIMIT: int = 5  # turns forwarded to the provider
    CHAT_TRUNCATE_MULTI_QUESTION: bool = True

    # Workflow sessions
    SESSION_TTL: int = 3600  # seconds idle before a session is dropped; 0 keeps them forever

    # Server Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 5001
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:3001"

    # OCR Configuration
    OCR_ENABLED: bool = False
    TESSERACT_CMD: str = "/usr/bin/tesseract"

    # Processing Configuration
    MAX_FILE_SIZE: int = 10 * 1024 * 1024  # 10 MB
    SUPPORTED_FILE_TYPES: List[str] = [".pdf", ".doc", ".docx", ".txt"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into a list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]


# Global settings instance
settings = Settings()
