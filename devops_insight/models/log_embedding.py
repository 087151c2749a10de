"""Log embedding database model."""

from typing import List

from sqlalchemy import JSON, BigInteger, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from devops_insight.models.base import BaseModel


class LogEmbeddingRecord(BaseModel):
    """Semantic vector for one summary revision."""

    __tablename__ = "log_embeddings"

    embedding_id: Mapped[str] = mapped_column(
        String(600), nullable=False, index=True, comment="<summary id>#emb"
    )

    summary_id: Mapped[str] = mapped_column(
        String(600), nullable=False, comment="Summary key and revision"
    )

    vector: Mapped[List[float]] = mapped_column(
        JSON, nullable=False, comment="Embedding vector"
    )

    error_signature: Mapped[str] = mapped_column(String(255), nullable=False)

    severity: Mapped[str] = mapped_column(String(16), nullable=False)

    occurrences: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    condensed_text: Mapped[str] = mapped_column(
        Text, nullable=False, comment="Text submitted to the embedding model"
    )

    last_seen_ms: Mapped[int] = mapped_column(
        BigInteger, nullable=False, comment="Source summary last_seen_ms"
    )

    __table_args__ = (Index("idx_embedding_project_last_seen", "project_id", "last_seen_ms"),)

    def __repr__(self) -> str:
        """String representation."""
        return f"<LogEmbeddingRecord(id={self.embedding_id}, dims={len(self.vector or [])})>"
