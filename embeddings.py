import asyncio
import logging
from typing import Optional

import voyageai

from app.config import get_config, DEFAULT_EMBEDDING_MODEL
from models import TradeRecord
from utils.document_builder import trade_to_searchable_text

logger = logging.getLogger(__name__)

EMBEDDING_DIMENSIONS = {
    "voyage-3.5-lite": 1024,  # Actual dimension returned by API (confirmed via testing)
    "voyage-3.5": 1024,
    "voyage-3-lite": 512,
    "voyage-3": 1024,
    "voyage-large-2": 1536,
    "voyage-2": 1024
}

PROBE_TEXT = "embedding service initialization check"


class EmbeddingError(Exception):
    """Raised when the embedding model cannot be reached or returns bad vectors."""
    pass


def get_embedding_dimensions(model: str) -> int:
    """Get embedding dimensions for a VoyageAI model."""
    return EMBEDDING_DIMENSIONS.get(model, 1024)  # Default to 1024


class EmbeddingService:
    """VoyageAI embedding client with an explicit lifecycle.

    Construct one per process (or per run) and pass it to the services that
    need it. ``initialize()`` must complete before the first embedding call;
    it is idempotent and safe to await from concurrent tasks.

    Usage:
        async with EmbeddingService() as service:
            vector = await service.generate_embedding("win trade amount 150")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_retries: int = 3,
        expected_dimensions: Optional[int] = None
    ):
        """Initialize the service (no network access happens here).

        Args:
            api_key: VoyageAI API key (default: VOYAGE_API_KEY from config)
            model: VoyageAI model name (default: VOYAGE_EMBEDDING_MODEL from config)
            max_retries: Client retries for 429 and 5xx responses
            expected_dimensions: Vector size to enforce (default: model's known size)
        """
        self._api_key = api_key
        self.model = model or get_config().get("VOYAGE_EMBEDDING_MODEL", default=DEFAULT_EMBEDDING_MODEL)
        self.max_retries = max_retries
        self.dimension = expected_dimensions or get_embedding_dimensions(self.model)

        self._client: Optional[voyageai.AsyncClient] = None
        self._init_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """
        Create the VoyageAI client and probe the model once.

        Raises:
            EmbeddingError: If no API key is configured or the probe fails
        """
        async with self._init_lock:
            if self._client is not None:
                return

            api_key = self._api_key or get_config().get("VOYAGE_API_KEY")
            if not api_key:
                raise EmbeddingError("VOYAGE_API_KEY environment variable not set")

            logger.info(f"Initializing embedding model {self.model}...")
            client = voyageai.AsyncClient(
                api_key=api_key,
                max_retries=self.max_retries  # Built-in exponential backoff for 429 and 5xx errors
            )

            try:
                probe = await self._embed(client, PROBE_TEXT, input_type="document")
            except EmbeddingError:
                raise
            except Exception as e:
                raise EmbeddingError(f"Model initialization failed: {e}") from e

            self._client = client
            logger.info(f"Embedding model initialized (dimension: {len(probe)})")

    async def close(self) -> None:
        """Release the client; a later call to initialize() creates a new one."""
        self._client = None
        logger.debug("Embedding service closed")

    async def __aenter__(self) -> "EmbeddingService":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def is_ready(self) -> bool:
        """Check if the client has been initialized."""
        return self._client is not None

    def get_model_info(self) -> dict:
        """Get model information."""
        return {
            "name": self.model,
            "dimension": self.dimension,
            "ready": self.is_ready()
        }

    async def _embed(self, client, text: str, input_type: str) -> list[float]:
        result = await client.embed(
            texts=[text],
            model=self.model,
            input_type=input_type,
            truncation=True  # Auto-truncate if exceeds context length
        )
        embedding = list(result.embeddings[0])

        if len(embedding) != self.dimension:
            raise EmbeddingError(
                f"Expected embedding dimension {self.dimension}, got {len(embedding)}"
            )
        return embedding

    async def _ensure_client(self):
        if self._client is None:
            await self.initialize()
        return self._client

    async def generate_embedding(self, text: str) -> list[float]:
        """
        Generate embedding for a document text.

        Args:
            text: Input text to embed

        Returns:
            List of floats representing the embedding vector

        Raises:
            ValueError: If text is empty
            EmbeddingError: If the vector has the wrong dimension
            Exception: For API errors after retries
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        client = await self._ensure_client()
        try:
            return await self._embed(client, text, input_type="document")
        except Exception as e:
            logger.error(f"Failed to generate embedding: {e}")
            raise

    async def generate_query_embedding(self, query: str) -> list[float]:
        """
        Generate embedding for a search query.

        Uses input_type="query" for optimal search performance.

        Raises:
            ValueError: If query is empty
        """
        if not query or not query.strip():
            raise ValueError("Cannot embed empty query")

        client = await self._ensure_client()
        try:
            return await self._embed(client, query, input_type="query")
        except Exception as e:
            logger.error(f"Failed to generate query embedding: {e}")
            raise

    async def generate_trade_embedding(self, trade: TradeRecord) -> tuple[list[float], str]:
        """
        Build searchable text for a trade and embed it.

        Returns:
            (embedding, content) tuple
        """
        content = trade_to_searchable_text(trade)
        embedding = await self.generate_embedding(content)
        return embedding, content

    async def generate_trade_embeddings(
        self,
        trades: list[TradeRecord]
    ) -> list[tuple[TradeRecord, list[float], str]]:
        """
        Embed several trades one at a time, skipping the ones that fail.

        Returns:
            (trade, embedding, content) triples for the trades that succeeded,
            in input order; failures are logged with the trade id
        """
        results = []
        for trade in trades:
            try:
                embedding, content = await self.generate_trade_embedding(trade)
            except Exception as e:
                logger.error(f"Failed to generate embedding for trade {trade.id}: {e}")
                continue
            results.append((trade, embedding, content))
        return results
