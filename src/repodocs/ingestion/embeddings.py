"""Embedding clients for chunk vectors."""

import asyncio
from abc import ABC, abstractmethod

import numpy as np
import openai
import structlog
from sentence_transformers import SentenceTransformer
from tenacity import retry, stop_after_attempt, wait_exponential

from repodocs.config import get_settings
from repodocs.errors import EmbeddingError

logger = structlog.get_logger()

# Characters, roughly the provider's per-input token limit
MAX_INPUT_CHARS = 8000


class EmbeddingClient(ABC):
    """Maps a batch of texts to fixed-dimension vectors, order preserved."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """
        Embed a batch of texts.

        Raises:
            EmbeddingError: If the provider failed for the batch
        """
        pass


class OpenAIEmbeddingClient(EmbeddingClient):
    """Embeddings from the OpenAI API with bounded retry."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        client: openai.AsyncOpenAI | None = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: OpenAI API key (defaults to REPODOCS_OPENAI_API_KEY)
            model: Embedding model name
            client: Pre-built AsyncOpenAI client
        """
        settings = get_settings()
        self.model = model or settings.embedding_model
        self.client = client or openai.AsyncOpenAI(api_key=api_key or settings.openai_api_key)

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, min=1, max=10), reraise=True)
    async def _create(self, batch: list[str]) -> list[list[float]]:
        response = await self.client.embeddings.create(model=self.model, input=batch)
        return [item.embedding for item in sorted(response.data, key=lambda d: d.index)]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        batch = [t[:MAX_INPUT_CHARS] for t in texts]
        try:
            return await self._create(batch)
        except openai.OpenAIError as e:
            raise EmbeddingError(f"OpenAI embedding request failed: {e}") from e


class SentenceTransformerEmbeddingClient(EmbeddingClient):
    """
    Local embeddings with sentence-transformers.

    Vectors are L2-normalized so cosine similarity is an inner product.
    """

    def __init__(self, model_name: str | None = None, batch_size: int | None = None):
        settings = get_settings()
        self.model_name = model_name or settings.embedding_model
        self.batch_size = batch_size or settings.embedding_batch_size
        self._model: SentenceTransformer | None = None

    def _get_model(self) -> SentenceTransformer:
        """Lazy load the embedding model."""
        if self._model is None:
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def _encode(self, texts: list[str]) -> list[list[float]]:
        embeddings = self._get_model().encode(
            texts,
            batch_size=self.batch_size,
            normalize_embeddings=True,
            show_progress_bar=False,
        )
        return np.asarray(embeddings, dtype="float32").tolist()

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            return await asyncio.to_thread(self._encode, texts)
        except (OSError, RuntimeError, ValueError) as e:
            raise EmbeddingError(f"Local embedding failed: {e}") from e


def get_embedding_client(provider: str | None = None) -> EmbeddingClient:
    """Create the embedding client for the configured provider."""
    settings = get_settings()
    provider = provider or settings.embedding_provider
    if provider == "openai":
        return OpenAIEmbeddingClient()
    if provider == "sentence-transformers":
        return SentenceTransformerEmbeddingClient()
    raise ValueError(f"Unknown embedding provider: {provider}")
