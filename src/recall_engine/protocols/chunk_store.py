"""Protocol for the chunk store."""

from __future__ import annotations

from typing import Protocol

from recall_engine.models.domain import Candidate, FilterSet


class ChunkStore(Protocol):
    async def search_vector(
        self,
        client_id: str,
        filters: FilterSet,
        embedding: list[float],
        limit: int = 50,
    ) -> list[Candidate]: ...

    async def search_text(
        self,
        client_id: str,
        filters: FilterSet,
        query_text: str,
        limit: int = 50,
    ) -> list[Candidate]: ...
