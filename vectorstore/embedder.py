"""OpenAI embedding generator with a synthetic fallback.

Uses text-embedding-3-small (1536 dimensions) by default. When no API key is
configured, or the API call fails for any reason, a random vector of the same
dimensionality is returned instead so indexing and search keep working
(without semantic meaning). Synthetic vectors are logged as such and counted
in ``mock_count``; structurally they are identical to real ones.
"""

import asyncio
import logging
import random
from typing import Optional

from openai import AsyncOpenAI, AuthenticationError, BadRequestError
from tenacity import AsyncRetrying, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from vectorstore.errors import EmbeddingUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "text-embedding-3-small"
DEFAULT_DIMENSIONS = 1536
MAX_CHARS_PER_TEXT = 8000
MAX_TOKENS_PER_TEXT = 8000  # model limit is 8192; leave margin
EMBED_TIMEOUT_SECONDS = 20.0


class Embedder:
    """Generate embeddings, degrading to synthetic vectors when the API is unavailable."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        dimensions: int = DEFAULT_DIMENSIONS,
        api_key: Optional[str] = None,
        max_chars: int = MAX_CHARS_PER_TEXT,
        allow_mock: bool = True,
        seed: Optional[int] = None,
        timeout: float = EMBED_TIMEOUT_SECONDS,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.dimensions = dimensions
        self.max_chars = max_chars
        self.allow_mock = allow_mock
        self.timeout = timeout
        self.mock_count = 0
        self._rng = random.Random(seed)
        self._encoder = None

        if client is not None:
            self.client = client
        elif api_key:
            self.client = AsyncOpenAI(api_key=api_key)
        else:
            self.client = None
            logger.warning("No OpenAI API key configured, embeddings will be synthetic")

    @classmethod
    def from_settings(cls, settings) -> "Embedder":
        return cls(
            model=settings.openai_embedding_model,
            dimensions=settings.embedding_dimensions,
            api_key=settings.openai_api_key,
            max_chars=settings.max_embed_chars,
            allow_mock=settings.allow_mock_embeddings,
            seed=settings.mock_embedding_seed,
        )

    @property
    def available(self) -> bool:
        return self.client is not None

    def _truncate_text(self, text: str) -> str:
        """Truncate to the character budget, then to the model's token limit."""
        text = text[: self.max_chars]
        if self._encoder is None:
            import tiktoken
            try:
                self._encoder = tiktoken.encoding_for_model(self.model)
            except KeyError:
                self._encoder = tiktoken.get_encoding("cl100k_base")
        tokens = self._encoder.encode(text)
        if len(tokens) <= MAX_TOKENS_PER_TEXT:
            return text
        logger.warning(
            "Truncating text from %d to %d tokens (first 60 chars: '%.60s')",
            len(tokens), MAX_TOKENS_PER_TEXT, text,
        )
        return self._encoder.decode(tokens[:MAX_TOKENS_PER_TEXT])

    async def _embed_remote(self, text: str) -> list[float]:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(2),
            wait=wait_exponential(multiplier=1, min=1, max=4),
            retry=retry_if_not_exception_type((BadRequestError, AuthenticationError)),
            before_sleep=lambda retry_state: logger.warning(
                "Embedding API retry %d after error: %s",
                retry_state.attempt_number,
                retry_state.outcome.exception() if retry_state.outcome else "unknown",
            ),
            reraise=True,
        ):
            with attempt:
                response = await asyncio.wait_for(
                    self.client.embeddings.create(
                        model=self.model,
                        input=text,
                        dimensions=self.dimensions,
                    ),
                    timeout=self.timeout,
                )
        vector = list(response.data[0].embedding)
        if len(vector) != self.dimensions:
            raise ValueError(
                f"Embedding has {len(vector)} dimensions, expected {self.dimensions}"
            )
        return vector

    def mock_vector(self) -> list[float]:
        """Uniform random vector in [-1, 1] with the configured dimensionality."""
        return [self._rng.uniform(-1.0, 1.0) for _ in range(self.dimensions)]

    def _fallback(self, reason: str) -> list[float]:
        if not self.allow_mock:
            raise EmbeddingUnavailableError(reason)
        self.mock_count += 1
        logger.warning("Using synthetic embedding (%s)", reason)
        return self.mock_vector()

    async def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Input longer than the provider-safe length is silently truncated. The
        returned vector always has ``self.dimensions`` components.
        """
        if self.client is None:
            return self._fallback("no API key")
        if not text or not text.strip():
            return self._fallback("empty text")

        try:
            # Encoder loading and tokenising are blocking
            truncated = await asyncio.to_thread(self._truncate_text, text)
            return await self._embed_remote(truncated)
        except Exception as e:
            logger.error("Error generating embedding: %s", e)
            return self._fallback(f"API error: {type(e).__name__}")
