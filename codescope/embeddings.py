"""
Embedding providers for codescope.

Two providers share one interface: an HTTP client for OpenAI-compatible
embedding endpoints (OpenAI, SiliconFlow, Cohere's compatibility API) and
a local sentence-transformers model.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, NamedTuple, Optional
import httpx

from .config import Config
from .exceptions import EmbeddingError
from .utils import retry_on_failure

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_MODEL = "all-MiniLM-L6-v2"
DEFAULT_BATCH_SIZE = 10
DEFAULT_TIMEOUT = 30.0


class ProviderPreset(NamedTuple):
    api_url: str
    model: str


HTTP_PROVIDERS = {
    "openai": ProviderPreset("https://api.openai.com/v1/embeddings", "text-embedding-3-large"),
    "siliconflow": ProviderPreset("https://api.siliconflow.cn/v1/embeddings", "Qwen/Qwen3-Embedding-8B"),
    "cohere": ProviderPreset("https://api.cohere.ai/compatibility/v1/embeddings", "embed-english-v3.0"),
}


class EmbeddingProvider(ABC):
    """Maps text to vectors, preserving input order."""

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Length of every vector this provider returns."""
        pass

    @abstractmethod
    def embed(self, texts: list[str]) -> list[list[float]]:
        """
        Embed texts.

        Args:
            texts: Texts to embed

        Returns:
            One vector per text, in input order
        """
        pass

    def embed_query(self, text: str) -> list[float]:
        """Embed a single search query."""
        return self.embed([text])[0]

    def close(self) -> None:
        """Release any held resources."""
        pass


class HttpEmbeddingClient(EmbeddingProvider):
    """
    Client for OpenAI-compatible embedding endpoints.

    Sends `{"model": ..., "input": [...]}` in batches of `batch_size`
    texts and re-associates the returned vectors by their `index` field,
    never by response order.
    """

    def __init__(
        self,
        api_url: str,
        model: str,
        api_key: Optional[str] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
        dimension: Optional[int] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        """
        Initialize the client.

        Args:
            api_url: Embeddings endpoint URL
            model: Model name sent with every request
            api_key: Bearer token, if the endpoint needs one
            batch_size: Maximum texts per request
            timeout: Request timeout in seconds
            dimension: Known vector length; probed with one request when None
            http_client: Preconfigured httpx client (tests inject a mock transport)
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.api_url = api_url
        self.model = model
        self.batch_size = batch_size
        self.timeout = timeout
        self._dimension = dimension

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._headers = headers
        self._client = http_client or httpx.Client(timeout=timeout)

    @property
    def dimension(self) -> int:
        if self._dimension is None:
            self._dimension = len(self.embed_query("dimension probe"))
            logger.info(f"Embedding dimension for {self.model}: {self._dimension}")
        return self._dimension

    def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        vectors: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start:start + self.batch_size]
            vectors.extend(self._embed_batch(batch))

        logger.debug(f"Embedded {len(texts)} texts with {self.model}")
        return vectors

    @retry_on_failure(max_attempts=3, delay=1.0, exceptions=(httpx.TransportError,))
    def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        response = self._client.post(
            self.api_url,
            json={"model": self.model, "input": texts},
            headers=self._headers,
            timeout=self.timeout,
        )
        if response.is_error:
            body = response.text
            raise EmbeddingError(
                f"Embedding request to {self.api_url} failed with status {response.status_code}: {body}",
                status_code=response.status_code,
                body=body,
            )

        data = self._parse_data(response)
        if len(data) != len(texts):
            raise EmbeddingError(
                f"Embedding count mismatch: sent {len(texts)} texts, received {len(data)} vectors"
            )

        ordered = sorted(data, key=lambda item: item.get("index", 0))
        return [list(item["embedding"]) for item in ordered]

    @staticmethod
    def _parse_data(response: httpx.Response) -> list[dict[str, Any]]:
        try:
            payload = response.json()
            data = payload["data"]
        except (ValueError, KeyError, TypeError) as e:
            raise EmbeddingError(
                f"Malformed embedding response: {e}: {response.text[:500]}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        if not isinstance(data, list) or not all(
            isinstance(item, dict) and "embedding" in item for item in data
        ):
            raise EmbeddingError("Malformed embedding response: 'data' items lack 'embedding'")
        return data

    def close(self) -> None:
        self._client.close()

    def __repr__(self) -> str:
        """String representation."""
        return f"HttpEmbeddingClient(url={self.api_url}, model={self.model}, batch_size={self.batch_size})"


class LocalEmbeddingModel(EmbeddingProvider):
    """
    Wrapper around sentence-transformers for generating embeddings locally.

    Features:
    - Lazy model loading (only loads when first needed)
    - Automatic GPU detection with CPU fallback
    - Normalized vectors, suitable for cosine distance
    """

    def __init__(self, model_name: str = DEFAULT_LOCAL_MODEL, device: Optional[str] = None, batch_size: int = 32):
        """
        Initialize the embedding model.

        Args:
            model_name: Name of the sentence-transformers model to use
            device: Device to use ('cuda', 'cpu', or None for auto-detect)
            batch_size: Texts encoded per forward pass
        """
        self.model_name = model_name
        self.device = device
        self.batch_size = batch_size
        self._model: Optional["SentenceTransformer"] = None
        self._dimension: Optional[int] = None
        self._model_lock = threading.Lock()

    @property
    def model(self) -> "SentenceTransformer":
        """Lazy-load the model on first access (thread-safe)."""
        if self._model is None:
            with self._model_lock:
                if self._model is None:
                    # Imported here: loading torch is slow and only needed for this provider
                    from sentence_transformers import SentenceTransformer

                    logger.info(f"Loading embedding model: {self.model_name}")
                    self._model = SentenceTransformer(self.model_name, device=self.device)
                    logger.info(f"Model loaded on device: {self._model.device}")
        return self._model

    @property
    def dimension(self) -> int:
        if self._dimension is None:
            self._dimension = len(self.embed_query("dimension probe"))
            logger.info(f"Embedding dimension: {self._dimension}")
        return self._dimension

    @retry_on_failure(max_attempts=3, delay=0.5, exceptions=(RuntimeError, OSError))
    def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        embeddings = self.model.encode(
            texts,
            batch_size=self.batch_size,
            convert_to_numpy=True,
            show_progress_bar=len(texts) > 100,
            normalize_embeddings=True,
        )
        return [emb.tolist() for emb in embeddings]

    def __repr__(self) -> str:
        """String representation."""
        loaded = "loaded" if self._model is not None else "not loaded"
        return f"LocalEmbeddingModel(model={self.model_name}, {loaded})"


def create_embedding_provider(config: Config) -> EmbeddingProvider:
    """
    Build the embedding provider selected by the [embeddings] config section.

    Args:
        config: Project configuration

    Returns:
        Configured provider

    Raises:
        ValueError: For an unknown provider name
    """
    provider = str(config.get("embeddings", "provider", default="local")).lower()
    model = config.get("embeddings", "model")
    dimension = config.get("embeddings", "dimension")

    if provider == "local":
        return LocalEmbeddingModel(model_name=model or DEFAULT_LOCAL_MODEL)

    preset = HTTP_PROVIDERS.get(provider)
    api_url = config.get("embeddings", "api_url")
    if preset is None and not api_url:
        raise ValueError(
            f"Unknown embedding provider: {provider}. "
            f"Supported: local, {', '.join(HTTP_PROVIDERS)} (or set api_url)"
        )

    api_key = config.get("embeddings", "api_key")
    if not api_key:
        logger.warning(f"No API key configured for embedding provider '{provider}'")

    return HttpEmbeddingClient(
        api_url=api_url or preset.api_url,
        model=model or (preset.model if preset else ""),
        api_key=api_key,
        batch_size=int(config.get("embeddings", "batch_size", default=DEFAULT_BATCH_SIZE)),
        timeout=float(config.get("embeddings", "timeout", default=DEFAULT_TIMEOUT)),
        dimension=dimension,
    )
