import os

from pydantic import BaseModel
from pydantic_settings import BaseSettings


def _parse_cors_origins() -> list[str] | None:
    """Parse CORS_ORIGINS env var as comma-separated string or JSON list."""
    raw = os.environ.get("CORS_ORIGINS")
    if not raw:
        return None
    if raw.startswith("["):
        import json
        return json.loads(raw)
    return [o.strip() for o in raw.split(",") if o.strip()]


# ---------------------------------------------------------------------------
# Per-component configuration values (passed in at construction time)
# ---------------------------------------------------------------------------

class ChunkingConfig(BaseModel):
    chunk_size: int = 800  # characters, not tokens
    chunk_overlap: int = 100
    min_chunk_size: int = 200
    min_section_chars: int = 50


class RetrievalConfig(BaseModel):
    default_top_k: int = 5


class ProviderConfig(BaseModel):
    api_key: str = ""
    model: str = "gemini-2.5-flash"
    temperature: float = 0.3
    max_output_tokens: int = 8192


class EmbeddingConfig(BaseModel):
    provider: str = "gemini"  # "gemini" | "sbert"
    api_key: str = ""
    model: str = "text-embedding-004"
    dimension: int = 512


class EvaluationConfig(BaseModel):
    context_top_k: int = 8
    max_cv_chars: int = 40_000
    max_attempts: int = 4
    backoff_base_ms: int = 2000
    lease_timeout_seconds: float = 120.0


class Settings(BaseSettings):
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"

    embedding_provider: str = "gemini"
    embedding_model: str = "text-embedding-004"
    embedding_dimension: int = 512

    chunk_size: int = 800
    chunk_overlap: int = 100
    min_chunk_size: int = 200
    retrieval_top_k: int = 5
    evaluation_context_top_k: int = 8

    llm_max_attempts: int = 4
    llm_backoff_base_ms: int = 2000
    evaluation_lease_timeout_seconds: float = 120.0
    max_cv_chars: int = 40_000

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
    ]
    rate_limit_enabled: bool = True
    evaluate_rate_limit: str = "10/minute"
    log_level: str = "INFO"
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "protected_namespaces": ("settings_",)}

    def chunking_config(self) -> ChunkingConfig:
        return ChunkingConfig(
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            min_chunk_size=self.min_chunk_size,
        )

    def retrieval_config(self) -> RetrievalConfig:
        return RetrievalConfig(default_top_k=self.retrieval_top_k)

    def provider_config(self) -> ProviderConfig:
        return ProviderConfig(api_key=self.gemini_api_key, model=self.gemini_model)

    def embedding_config(self) -> EmbeddingConfig:
        return EmbeddingConfig(
            provider=self.embedding_provider,
            api_key=self.gemini_api_key,
            model=self.embedding_model,
            dimension=self.embedding_dimension,
        )

    def evaluation_config(self) -> EvaluationConfig:
        return EvaluationConfig(
            context_top_k=self.evaluation_context_top_k,
            max_cv_chars=self.max_cv_chars,
            max_attempts=self.llm_max_attempts,
            backoff_base_ms=self.llm_backoff_base_ms,
            lease_timeout_seconds=self.evaluation_lease_timeout_seconds,
        )


_cors_override = _parse_cors_origins()
settings = Settings(**{"cors_origins": _cors_override} if _cors_override else {})
