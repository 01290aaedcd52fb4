from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── AI Providers ──────────────────────────────────────────────────────────
    AI_PROVIDER: str = "hybrid"

    @field_validator("AI_PROVIDER")
    @classmethod
    def validate_ai_provider(cls, v: str) -> str:
        allowed = {"hybrid", "groq", "gemini"}
        if v.lower() not in allowed:
            raise ValueError(f"AI_PROVIDER must be one of {allowed}, got '{v}'")
        return v.lower()

    # Groq (Llama 3 - High Speed)
    GROQ_API_KEY: Optional[str] = None
    GROQ_MODEL: str = "llama-3.3-70b-versatile"

    # Google (Gemini - Complex Reasoning)
    GOOGLE_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.0-flash-lite"

    # Minimum spacing between two reasoning calls, shared by every call site
    MIN_CALL_DELAY_MS: int = 1200

    # ── Chunking ──────────────────────────────────────────────────────────────
    CHUNK_SIZE: int = 1500  # chars per chunk
    CHUNK_OVERLAP: float = 0.15  # fraction of the previous chunk's sentences

    @field_validator("CHUNK_OVERLAP")
    @classmethod
    def validate_overlap(cls, v: float) -> float:
        if not 0.0 <= v < 1.0:
            raise ValueError(f"CHUNK_OVERLAP must be in [0, 1), got {v}")
        return v

    # ── Mind map limits ───────────────────────────────────────────────────────
    MAX_NODES: int = 150
    MAX_LEVELS: int = 4
    MAX_LABEL_LENGTH: int = 25
    MAX_RELATIONSHIP_LENGTH: int = 20
    ATTACH_UNREACHABLE: bool = False
    AI_TIMEOUT_SECONDS: int = 300  # 5-minute timeout for the whole pipeline

    # ── Core ──────────────────────────────────────────────────────────────────
    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
