"""Endpoints operacionais das origens pollados."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from app.bootstrap import get_poll_scheduler, get_source_store
from app.domain.source import Source
from app.protocols.source_store import SourceStoreProtocol
from app.services.poll_scheduler import PollScheduler

router = APIRouter()


class SourceView(BaseModel):
    key: str
    source_type: str
    source_id: str
    display_name: str | None = None
    poll_interval_seconds: int
    next_poll_at: datetime | None = None
    last_poll_attempted_at: datetime | None = None
    last_successful_poll_at: datetime | None = None
    consecutive_failures: int = 0
    error_details: dict[str, Any] = {}

    @classmethod
    def from_source(cls, source: Source) -> SourceView:
        return cls(
            key=source.key,
            source_type=source.source_type.value,
            source_id=source.source_id,
            display_name=source.display_name,
            poll_interval_seconds=source.poll_interval_seconds,
            next_poll_at=source.next_poll_at,
            last_poll_attempted_at=source.last_poll_attempted_at,
            last_successful_poll_at=source.last_successful_poll_at,
            consecutive_failures=source.consecutive_failures,
            error_details=dict(source.error_details),
        )


@router.get("/due", response_model=list[SourceView])
async def list_due_sources(
    scheduler: Annotated[PollScheduler, Depends(get_poll_scheduler)],
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
) -> list[SourceView]:
    """Origens com next_poll_at vencido, na ordem de reserva."""
    sources = await scheduler.due_sources(datetime.now(UTC), limit)
    return [SourceView.from_source(source) for source in sources]


@router.get("/{source_key}", response_model=SourceView)
async def get_source(
    source_key: str,
    store: Annotated[SourceStoreProtocol, Depends(get_source_store)],
) -> SourceView:
    source = await store.get(source_key)
    if source is None:
        raise HTTPException(status_code=404, detail="Origem não encontrada")
    return SourceView.from_source(source)
