"""Endpoints operacionais da outbox: consulta e re-enfileiramento."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from app.bootstrap import get_outbox
from app.services.outbox import DEFAULT_VIEW_LIMIT, Outbox
from config.logging import mask_recipient
from fsm.states import parse_status
from utils.errors import InvalidTransitionError

logger = logging.getLogger(__name__)

router = APIRouter()

OutboxDep = Annotated[Outbox, Depends(get_outbox)]


class EnvelopeView(BaseModel):
    """Envelope como exposto para operação."""

    id: str
    recipient: str
    status: str
    payload: dict[str, dict[str, Any]]
    provenance: dict[str, Any]
    error: dict[str, Any] | None = None
    source_key: str | None = None
    created_at: datetime
    updated_at: datetime
    version: int

    @classmethod
    def from_envelope(cls, envelope: Any) -> EnvelopeView:
        data = envelope.to_dict()
        return cls(**data)


@router.get("/envelopes", response_model=list[EnvelopeView])
async def list_envelopes(
    outbox: OutboxDep,
    status: str | None = None,
    recipient: str | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = DEFAULT_VIEW_LIMIT,
) -> list[EnvelopeView]:
    """Lista envelopes por status e/ou destinatário."""
    try:
        parsed = parse_status(status) if status else None
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if recipient is not None:
        envelopes = await outbox.for_recipient(recipient, status=parsed, limit=limit)
    elif parsed is not None:
        envelopes = await outbox.by_status(parsed, limit)
    else:
        raise HTTPException(status_code=400, detail="Informe status ou recipient")
    return [EnvelopeView.from_envelope(envelope) for envelope in envelopes]


@router.get("/envelopes/{envelope_id}", response_model=EnvelopeView)
async def get_envelope(envelope_id: str, outbox: OutboxDep) -> EnvelopeView:
    envelope = await outbox.get(envelope_id)
    if envelope is None:
        raise HTTPException(status_code=404, detail="Envelope não encontrado")
    return EnvelopeView.from_envelope(envelope)


@router.post("/envelopes/{envelope_id}/requeue", response_model=EnvelopeView, status_code=201)
async def requeue_envelope(envelope_id: str, outbox: OutboxDep) -> EnvelopeView:
    """Cria um novo envelope queued a partir de um failed/partially_sent."""
    try:
        envelope = await outbox.requeue(envelope_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Envelope não encontrado") from exc
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    logger.info(
        "envelope_requeue_requested",
        extra={
            "envelope_id": envelope.id,
            "requeued_from": envelope_id,
            "recipient": mask_recipient(envelope.recipient),
        },
    )
    return EnvelopeView.from_envelope(envelope)
