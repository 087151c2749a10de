"""Bounded-concurrency enrichment of Summaries into embedding records."""

import asyncio
from typing import List, Optional, Protocol, Sequence

from devops_insight.core.error_handling import EnrichmentError
from devops_insight.core.logging import get_logger
from devops_insight.monitoring.metrics import get_metrics_collector
from devops_insight.schemas.log_schemas import EmbeddingRecord, Summary

logger = get_logger(__name__)


class Embedder(Protocol):
    """Anything that turns text into a vector."""

    async def embed(self, text: str) -> List[float]:
        ...


def build_condensed_text(summary: Summary, sample_chars: int = 200) -> str:
    """Describe a summary in one line for the embedding model."""
    sample = (summary.sample_message or "")[:sample_chars]
    return (
        f"Service: {summary.component} | Error: {summary.error_signature} | "
        f"Severity: {summary.severity} | Occurrences: {summary.occurrences} | "
        f"Sample: {sample}"
    )


class EnrichmentPool:
    """
    Fans summaries out to an embedder with at most ``pool_size`` calls in flight.

    Each call is bounded by ``timeout_seconds``. A failed or timed-out call
    drops that summary from the result; the pool never raises.
    """

    def __init__(
        self,
        embedder: Embedder,
        pool_size: int = 5,
        timeout_seconds: float = 30.0,
        sample_chars: int = 200,
    ) -> None:
        """Initialize enrichment pool."""
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        self.embedder = embedder
        self.pool_size = pool_size
        self.timeout_seconds = timeout_seconds
        self.sample_chars = sample_chars

    async def enrich(self, summaries: Sequence[Summary]) -> List[EmbeddingRecord]:
        """
        Embed every summary concurrently and join all calls.

        Args:
            summaries: Summaries to enrich

        Returns:
            Records for the summaries that embedded successfully, in input order
        """
        if not summaries:
            return []

        semaphore = asyncio.Semaphore(self.pool_size)
        results = await asyncio.gather(
            *(self._enrich_one(summary, semaphore) for summary in summaries)
        )
        records = [r for r in results if r is not None]

        logger.info(
            "enrichment_completed",
            requested=len(summaries),
            embedded=len(records),
            failed=len(summaries) - len(records),
        )
        return records

    async def _enrich_one(
        self, summary: Summary, semaphore: asyncio.Semaphore
    ) -> Optional[EmbeddingRecord]:
        """Embed one summary, absorbing its failure."""
        text = build_condensed_text(summary, self.sample_chars)

        async with semaphore:
            try:
                vector = await self._embed(text)
            except EnrichmentError as e:
                logger.warning("embedding_failed", summary_id=summary.summary_id, error=str(e))
                get_metrics_collector().record_embedding_failure()
                return None

        return EmbeddingRecord(
            project_id=summary.project_id,
            embedding_id=f"{summary.summary_id}#emb",
            summary_id=summary.summary_id,
            vector=vector,
            error_signature=summary.error_signature,
            severity=summary.severity,
            occurrences=summary.occurrences,
            condensed_text=text,
            last_seen_ms=summary.last_seen_ms,
        )

    async def _embed(self, text: str) -> List[float]:
        """Call the embedder under the per-call timeout."""
        try:
            vector = await asyncio.wait_for(self.embedder.embed(text), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise EnrichmentError(f"embedding timed out after {self.timeout_seconds}s") from e
        except Exception as e:
            raise EnrichmentError(str(e) or type(e).__name__) from e

        if not vector:
            raise EnrichmentError("embedding service returned an empty vector")
        return list(vector)
