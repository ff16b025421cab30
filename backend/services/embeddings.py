"""Text embedding backends used by the vector store.

Both backends follow the same lazy-loading contract: the underlying client
or model is created on first use, not at construction time.
"""

import logging
from abc import ABC, abstractmethod

import numpy as np

from config import EmbeddingConfig
from services.errors import ConfigurationError

logger = logging.getLogger(__name__)

EMBED_BATCH_SIZE = 100


class BaseEmbedder(ABC):
    """Base class for embedding services.

    Subclasses must implement:
        - load(): create the client / load model weights
        - _embed_batch(texts): return one vector per input text
    """

    name: str = ""
    _loaded: bool = False

    @abstractmethod
    def load(self) -> None:
        """Load client or model. Called once on first use."""

    @abstractmethod
    def _embed_batch(self, texts: list[str]) -> np.ndarray:
        """Embed at most EMBED_BATCH_SIZE texts."""

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def ensure_loaded(self) -> None:
        """Load if not already loaded."""
        if not self._loaded:
            logger.info("Loading embedder: %s", self.name)
            self.load()
            self._loaded = True
            logger.info("Embedder loaded: %s", self.name)

    def embed(self, texts: list[str]) -> np.ndarray:
        """Embed texts in batches. Returns an (n, dim) float32 matrix."""
        self.ensure_loaded()
        if not texts:
            return np.zeros((0, 0), dtype=np.float32)
        batches = [
            self._embed_batch(texts[i:i + EMBED_BATCH_SIZE])
            for i in range(0, len(texts), EMBED_BATCH_SIZE)
        ]
        logger.debug("%s embedded %d texts in %d batches", self.name, len(texts), len(batches))
        return np.vstack(batches).astype(np.float32)


class GeminiEmbedder(BaseEmbedder):
    name = "gemini"

    def __init__(self, config: EmbeddingConfig) -> None:
        self.config = config
        self._client = None

    def load(self) -> None:
        if not self.config.api_key:
            raise ConfigurationError("GEMINI_API_KEY is required for embeddings")
        from google import genai

        self._client = genai.Client(api_key=self.config.api_key)

    def _embed_batch(self, texts: list[str]) -> np.ndarray:
        from google.genai import types

        result = self._client.models.embed_content(
            model=self.config.model,
            contents=texts,
            config=types.EmbedContentConfig(output_dimensionality=self.config.dimension),
        )
        return np.array([e.values for e in result.embeddings], dtype=np.float32)


class SentenceTransformerEmbedder(BaseEmbedder):
    name = "sbert"

    def __init__(self, config: EmbeddingConfig) -> None:
        self.config = config
        self._model = None

    def load(self) -> None:
        from sentence_transformers import SentenceTransformer

        self._model = SentenceTransformer(self.config.model)

    def _embed_batch(self, texts: list[str]) -> np.ndarray:
        return self._model.encode(texts, convert_to_numpy=True, normalize_embeddings=True)


def create_embedder(config: EmbeddingConfig) -> BaseEmbedder:
    """Factory: pick an embedding backend by name."""
    if config.provider == "gemini":
        return GeminiEmbedder(config)
    elif config.provider == "sbert":
        return SentenceTransformerEmbedder(config)
    else:
        raise ValueError(f"Unknown embedding provider: {config.provider}")
