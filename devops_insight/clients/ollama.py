"""Ollama HTTP client for embeddings and text generation."""

from typing import List, Optional

import httpx

from devops_insight.core.config import get_settings
from devops_insight.core.logging import get_logger

logger = get_logger(__name__)


class OllamaClient:
    """
    Thin async client for an Ollama server.

    Every request carries an explicit timeout. Non-2xx responses and
    payloads without the expected field raise.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        embedding_model: Optional[str] = None,
        generation_model: Optional[str] = None,
        embedding_timeout_seconds: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize client from settings, overridable per argument."""
        settings = get_settings()
        self.base_url = (base_url or settings.ollama_base_url).rstrip("/")
        self.embedding_model = embedding_model or settings.embedding_model
        self.generation_model = generation_model or settings.generation_model
        self.embedding_timeout_seconds = (
            embedding_timeout_seconds or settings.embedding_timeout_seconds
        )
        self._client = client or httpx.AsyncClient(base_url=self.base_url)

    async def embed(self, text: str) -> List[float]:
        """
        Request an embedding vector.

        Args:
            text: Text to embed

        Returns:
            Embedding vector

        Raises:
            httpx.HTTPError: On transport failure or non-2xx status
            ValueError: If the response carries no embedding
        """
        response = await self._client.post(
            "/api/embeddings",
            json={"model": self.embedding_model, "prompt": text},
            timeout=httpx.Timeout(self.embedding_timeout_seconds),
        )
        response.raise_for_status()

        embedding = response.json().get("embedding")
        if not embedding:
            raise ValueError("Ollama returned an empty embedding")
        return [float(v) for v in embedding]

    async def generate(self, prompt: str, timeout_seconds: float) -> str:
        """
        Request a single non-streamed completion.

        Args:
            prompt: Prompt text
            timeout_seconds: Request timeout

        Returns:
            Completion text

        Raises:
            httpx.HTTPError: On transport failure or non-2xx status
            ValueError: If the response carries no completion
        """
        response = await self._client.post(
            "/api/generate",
            json={"model": self.generation_model, "prompt": prompt, "stream": False},
            timeout=httpx.Timeout(timeout_seconds),
        )
        response.raise_for_status()

        completion = response.json().get("response")
        if completion is None:
            raise ValueError("Ollama returned an empty response")

        logger.debug(
            "ollama_generate_completed", model=self.generation_model, chars=len(completion)
        )
        return completion

    async def is_available(self) -> bool:
        """Check whether the server answers its model listing."""
        try:
            response = await self._client.get("/api/tags", timeout=httpx.Timeout(5.0))
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("ollama_unavailable", base_url=self.base_url, error=str(e))
            return False
        return True

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()


_ollama_client: Optional[OllamaClient] = None


def get_ollama_client() -> OllamaClient:
    """Get or create the Ollama client singleton."""
    global _ollama_client
    if _ollama_client is None:
        _ollama_client = OllamaClient()
    return _ollama_client


async def close_ollama_client() -> None:
    """Close the singleton client if it was created."""
    global _ollama_client
    if _ollama_client is not None:
        await _ollama_client.aclose()
        _ollama_client = None
