"""Testes do OutboxDispatcher."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.domain.envelope import (
    DeliveryBaseline,
    Envelope,
    FieldChange,
    FieldProvenance,
    Provenance,
    UpdateStrategy,
    serialize_changes,
)
from app.infra.stores.memory_stores import (
    MemoryContactAuditStore,
    MemoryDeliveryBaselineStore,
    MemoryOutboxStore,
    MemoryRateLimitStore,
)
from app.services.dispatcher import (
    OutboxDispatcher,
    apply_strategies,
    filter_by_baselines,
    group_by_recipient,
    initial_fields_for_new_contact,
    merge_payloads,
    seed_delivery_baselines,
)
from app.services.outbox import Outbox
from app.services.rate_limiter import RateLimiterRegistry
from fsm.states import EnvelopeStatus
from utils.errors import RedisConnectionError

T0 = datetime(2024, 1, 1, tzinfo=UTC)
BUCKET = "rate:loops:global"


def _change(value: Any, at: datetime = T0, strategy: UpdateStrategy = UpdateStrategy.UPSERT) -> FieldChange:
    return FieldChange(value=value, strategy=strategy, modified_at=at)


def _envelope(recipient: str, created_at: datetime, **changes: FieldChange) -> Envelope:
    return Envelope(recipient=recipient, payload=serialize_changes(changes), created_at=created_at)


class Harness:
    """Dispatcher com stores em memória e destino mockado."""

    def __init__(self, response: Any = None, user_group: str | None = None) -> None:
        self.now = T0
        self.store = MemoryOutboxStore()
        self.outbox = Outbox(self.store, clock=lambda: T0)
        self.destination = MagicMock()
        self.destination.find_contact = AsyncMock(return_value={"id": "c-1", "email": "a@b.com"})
        self.destination.update_contact = AsyncMock(
            return_value=response if response is not None else {"success": True, "id": "req-1"}
        )
        self.registry = RateLimiterRegistry(MemoryRateLimitStore())
        self.registry.register(BUCKET, 1000, 1.0)
        self.baselines = MemoryDeliveryBaselineStore()
        self.audits = MemoryContactAuditStore()
        self.dispatcher = OutboxDispatcher(
            self.store,
            self.destination,
            self.registry,
            delivery_baselines=self.baselines,
            audits=self.audits,
            bucket=BUCKET,
            new_contact_user_group=user_group,
            clock=lambda: self.now,
        )

    async def status_of(self, envelope_id: str) -> EnvelopeStatus:
        envelope = await self.store.get(envelope_id)
        assert envelope is not None
        return envelope.status


class TestPureHelpers:
    """Merge, filtro por baseline e estratégias."""

    def test_group_by_recipient_keeps_creation_order(self) -> None:
        late = _envelope("a@b.com", T0 + timedelta(seconds=2), x=_change(1))
        early = _envelope("a@b.com", T0, x=_change(2))
        other = _envelope("c@d.com", T0, x=_change(3))

        groups = group_by_recipient([late, other, early])

        assert [e.id for e in groups["a@b.com"]] == [early.id, late.id]
        assert list(groups) == ["c@d.com", "a@b.com"]

    def test_merge_latest_modified_at_wins(self) -> None:
        first = _envelope("a@b.com", T0, plan=_change("free", T0 + timedelta(seconds=10)))
        second = _envelope("a@b.com", T0, plan=_change("pro", T0 + timedelta(seconds=5)))

        merged = merge_payloads([first, second])

        assert merged["plan"].change.value == "free"
        assert merged["plan"].envelope.id == first.id

    def test_merge_tie_keeps_first(self) -> None:
        first = _envelope("a@b.com", T0, plan=_change("free"))
        second = _envelope("a@b.com", T0, plan=_change("pro"))

        assert merge_payloads([first, second])["plan"].change.value == "free"

    def test_filter_drops_already_delivered(self) -> None:
        merged = merge_payloads([_envelope("a@b.com", T0, plan=_change({"b": 1, "a": 2}))])
        baselines = {"plan": DeliveryBaseline.sent("a@b.com", "plan", {"a": 2, "b": 1}, T0)}

        assert filter_by_baselines(merged, baselines, T0) == {}

    def test_filter_keeps_expired_baseline(self) -> None:
        merged = merge_payloads([_envelope("a@b.com", T0, plan=_change("pro"))])
        baselines = {"plan": DeliveryBaseline.sent("a@b.com", "plan", "pro", T0, ttl_days=1)}

        assert "plan" in filter_by_baselines(merged, baselines, T0 + timedelta(days=2))

    def test_filter_keeps_override(self) -> None:
        merged = merge_payloads(
            [_envelope("a@b.com", T0, plan=_change("pro", strategy=UpdateStrategy.OVERRIDE))]
        )
        baselines = {"plan": DeliveryBaseline.sent("a@b.com", "plan", "pro", T0)}

        assert "plan" in filter_by_baselines(merged, baselines, T0)

    def test_strategies(self) -> None:
        merged = merge_payloads(
            [
                _envelope(
                    "a@b.com",
                    T0,
                    name=_change(None),
                    plan=_change(None, strategy=UpdateStrategy.OVERRIDE),
                    city=_change("Recife"),
                )
            ]
        )

        assert apply_strategies(merged) == {"plan": None, "city": "Recife"}


class TestDispatchFlow:
    """Fluxo completo de drain."""

    @pytest.mark.asyncio
    async def test_merges_envelopes_into_single_update(self) -> None:
        harness = Harness()
        first = await harness.outbox.enqueue("a@b.com", {"plan": _change("free", T0)})
        second = await harness.outbox.enqueue(
            "a@b.com", {"plan": _change("pro", T0 + timedelta(seconds=1)), "city": _change("Natal")}
        )

        summary = await harness.dispatcher.drain()

        harness.destination.update_contact.assert_awaited_once_with(
            "a@b.com", {"plan": "pro", "city": "Natal"}
        )
        assert summary.claimed == 2
        assert summary.count(EnvelopeStatus.SENT) == 2
        assert await harness.status_of(first.id) == EnvelopeStatus.SENT
        assert await harness.status_of(second.id) == EnvelopeStatus.SENT

    @pytest.mark.asyncio
    async def test_records_delivery_baselines_and_audit(self) -> None:
        harness = Harness()
        provenance = Provenance(
            source_key="airtable:app1",
            table_id="tbl",
            record_id="rec",
            fields=(FieldProvenance("fld", "Loops - plan", "free", "pro", T0),),
        )
        await harness.outbox.enqueue("a@b.com", {"plan": _change("pro")}, provenance=provenance)

        await harness.dispatcher.drain()

        baselines = await harness.baselines.get_many("a@b.com", ["plan"])
        assert baselines["plan"].last_sent_value == "pro"
        [audit] = harness.audits.get_records()
        assert audit.field_name == "plan"
        assert audit.new_destination_value == "pro"
        assert audit.former_source_value == "free"
        assert audit.source_field_id == "fld"
        assert audit.request_id == "req-1"

    @pytest.mark.asyncio
    async def test_second_delivery_of_same_value_is_noop(self) -> None:
        harness = Harness()
        await harness.outbox.enqueue("a@b.com", {"plan": _change("pro")})
        await harness.dispatcher.drain()
        repeat = await harness.outbox.enqueue("a@b.com", {"plan": _change("pro")})

        summary = await harness.dispatcher.drain()

        assert harness.destination.update_contact.await_count == 1
        assert summary.count(EnvelopeStatus.IGNORED_NOOP) == 1
        assert await harness.status_of(repeat.id) == EnvelopeStatus.IGNORED_NOOP

    @pytest.mark.asyncio
    async def test_partially_sent_when_upsert_none_dropped(self) -> None:
        harness = Harness()
        envelope = await harness.outbox.enqueue(
            "a@b.com", {"plan": _change("pro"), "name": _change(None)}
        )

        await harness.dispatcher.drain()

        harness.destination.update_contact.assert_awaited_once_with("a@b.com", {"plan": "pro"})
        assert await harness.status_of(envelope.id) == EnvelopeStatus.PARTIALLY_SENT

    @pytest.mark.asyncio
    async def test_request_id_falls_back_to_generated(self) -> None:
        harness = Harness(response={"success": True})
        await harness.outbox.enqueue("a@b.com", {"plan": _change("pro")})

        await harness.dispatcher.drain()

        [audit] = harness.audits.get_records()
        assert audit.request_id and len(audit.request_id) == 32

    @pytest.mark.asyncio
    async def test_rejected_response_marks_failed(self) -> None:
        harness = Harness(response={"success": False, "message": "invalid"})
        envelope = await harness.outbox.enqueue("a@b.com", {"plan": _change("pro")})

        summary = await harness.dispatcher.drain()

        stored = await harness.store.get(envelope.id)
        assert stored.status == EnvelopeStatus.FAILED
        assert stored.error["klass"] == "DestinationUpdateRejected"
        assert stored.error["payload_sent"] == {"plan": "pro"}
        assert summary.count(EnvelopeStatus.FAILED) == 1
        assert harness.audits.get_records() == []
        assert await harness.baselines.get_many("a@b.com", ["plan"]) == {}

    @pytest.mark.asyncio
    async def test_destination_exception_marks_failed_and_continues(self) -> None:
        harness = Harness()
        harness.destination.update_contact.side_effect = [
            TimeoutError("slow"),
            {"success": True, "id": "req-2"},
        ]
        failing = await harness.outbox.enqueue("a@b.com", {"plan": _change("pro")})
        ok = await harness.outbox.enqueue("c@d.com", {"plan": _change("pro")})

        await harness.dispatcher.drain()

        stored = await harness.store.get(failing.id)
        assert stored.status == EnvelopeStatus.FAILED
        assert stored.error["stage"] == "update_contact"
        assert stored.error["klass"] == "TimeoutError"
        assert await harness.status_of(ok.id) == EnvelopeStatus.SENT

    @pytest.mark.asyncio
    async def test_rate_limiter_failure_marks_failed_and_propagates(self) -> None:
        harness = Harness()
        harness.registry.acquire = AsyncMock(side_effect=RedisConnectionError("redis down"))
        envelope = await harness.outbox.enqueue("a@b.com", {"plan": _change("pro")})

        with pytest.raises(RedisConnectionError):
            await harness.dispatcher.drain()

        stored = await harness.store.get(envelope.id)
        assert stored.status == EnvelopeStatus.FAILED
        assert stored.error["stage"] == "rate_limit"
        harness.destination.update_contact.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_drain_processes_multiple_batches(self) -> None:
        harness = Harness()
        for index in range(5):
            await harness.outbox.enqueue(f"user{index}@b.com", {"plan": _change(index)})

        summary = await harness.dispatcher.drain(batch_size=2)

        assert summary.claimed == 5
        assert summary.recipients == 5
        assert harness.destination.update_contact.await_count == 5

    @pytest.mark.asyncio
    async def test_empty_queue(self) -> None:
        harness = Harness()

        summary = await harness.dispatcher.drain()

        assert summary.to_dict() == {"claimed": 0, "recipients": 0, "reclaimed": 0, "released": 0}


def _source_provenance(source_name: str | None = "Inscrições") -> Provenance:
    return Provenance(
        source_key="airtable:app1",
        source_type="airtable",
        source_name=source_name,
        table_id="tbl",
        record_id="rec",
    )


class TestInterruptedDrain:
    """Envelopes reivindicados nunca ficam presos em dispatching."""

    @pytest.mark.asyncio
    async def test_limiter_failure_releases_remaining_groups(self) -> None:
        harness = Harness()
        harness.registry.acquire = AsyncMock(side_effect=RedisConnectionError("redis down"))
        first = await harness.outbox.enqueue("a@b.com", {"plan": _change("pro")})
        second = await harness.outbox.enqueue("c@d.com", {"plan": _change("pro")})

        with pytest.raises(RedisConnectionError):
            await harness.dispatcher.drain()

        assert await harness.status_of(first.id) == EnvelopeStatus.FAILED
        assert await harness.status_of(second.id) == EnvelopeStatus.QUEUED

        del harness.registry.acquire
        summary = await harness.dispatcher.drain()

        assert summary.claimed == 1
        assert await harness.status_of(second.id) == EnvelopeStatus.SENT
        harness.destination.update_contact.assert_awaited_once_with("c@d.com", {"plan": "pro"})

    @pytest.mark.asyncio
    async def test_stale_claim_is_reclaimed(self) -> None:
        harness = Harness()
        envelope = await harness.outbox.enqueue("a@b.com", {"plan": _change("pro")})
        await harness.store.claim_queued(10, T0)
        harness.now = T0 + timedelta(minutes=10)

        summary = await harness.dispatcher.drain()

        assert summary.reclaimed == 1
        assert await harness.status_of(envelope.id) == EnvelopeStatus.SENT

    @pytest.mark.asyncio
    async def test_claim_within_lease_is_left_alone(self) -> None:
        harness = Harness()
        envelope = await harness.outbox.enqueue("a@b.com", {"plan": _change("pro")})
        await harness.store.claim_queued(10, T0)
        harness.now = T0 + timedelta(seconds=60)

        summary = await harness.dispatcher.drain()

        assert summary.reclaimed == 0
        assert await harness.status_of(envelope.id) == EnvelopeStatus.DISPATCHING
        harness.destination.update_contact.assert_not_awaited()


class TestPreflight:
    """Consulta do contato antes da primeira entrega."""

    def test_seed_skips_system_fields_and_none(self) -> None:
        contact = {"id": "c-1", "email": "a@b.com", "createdAt": "x", "plan": "pro", "nick": None}

        seeded = seed_delivery_baselines("a@b.com", contact, T0)

        assert [(b.field_name, b.last_sent_value) for b in seeded] == [("plan", "pro")]

    def test_initial_fields_fall_back_to_source_id(self) -> None:
        envelope = Envelope(
            recipient="a@b.com",
            payload={},
            provenance=Provenance(source_key="airtable:app9", source_type="airtable"),
        )

        fields = initial_fields_for_new_contact(envelope, None, T0)

        assert {name: change.value for name, change in fields.items()} == {
            "source": "Airtable - app9"
        }

    @pytest.mark.asyncio
    async def test_existing_contact_seeds_baselines(self) -> None:
        harness = Harness()
        harness.destination.find_contact.return_value = {
            "id": "c-1",
            "email": "a@b.com",
            "plan": "pro",
            "city": "Recife",
        }
        await harness.outbox.enqueue(
            "a@b.com",
            {"plan": _change("pro"), "city": _change("Natal")},
            provenance=_source_provenance(),
        )

        await harness.dispatcher.drain()

        harness.destination.update_contact.assert_awaited_once_with("a@b.com", {"city": "Natal"})
        [audit] = harness.audits.get_records()
        assert audit.former_destination_value == "Recife"
        seeded = await harness.baselines.get_many("a@b.com", ["plan"])
        assert seeded["plan"].last_sent_value == "pro"

    @pytest.mark.asyncio
    async def test_new_contact_receives_initial_fields(self) -> None:
        harness = Harness(user_group="Hack Clubber")
        harness.destination.find_contact.return_value = None
        await harness.outbox.enqueue(
            "a@b.com", {"plan": _change("pro")}, provenance=_source_provenance()
        )

        await harness.dispatcher.drain()

        harness.destination.update_contact.assert_awaited_once_with(
            "a@b.com",
            {"plan": "pro", "userGroup": "Hack Clubber", "source": "Airtable - Inscrições"},
        )

    @pytest.mark.asyncio
    async def test_queued_value_wins_over_initial_field(self) -> None:
        harness = Harness(user_group="Hack Clubber")
        harness.destination.find_contact.return_value = None
        await harness.outbox.enqueue(
            "a@b.com", {"source": _change("Manual")}, provenance=_source_provenance()
        )

        await harness.dispatcher.drain()

        sent = harness.destination.update_contact.await_args.args[1]
        assert sent["source"] == "Manual"
        assert sent["userGroup"] == "Hack Clubber"

    @pytest.mark.asyncio
    async def test_known_recipient_skips_lookup(self) -> None:
        harness = Harness()
        await harness.baselines.upsert_many([DeliveryBaseline.sent("a@b.com", "plan", "free", T0)])
        await harness.outbox.enqueue(
            "a@b.com", {"plan": _change("pro")}, provenance=_source_provenance()
        )

        await harness.dispatcher.drain()

        harness.destination.find_contact.assert_not_awaited()
        harness.destination.update_contact.assert_awaited_once_with("a@b.com", {"plan": "pro"})

    @pytest.mark.asyncio
    async def test_envelope_without_source_skips_lookup(self) -> None:
        harness = Harness()
        await harness.outbox.enqueue("a@b.com", {"plan": _change("pro")})

        await harness.dispatcher.drain()

        harness.destination.find_contact.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lookup_failure_marks_failed(self) -> None:
        harness = Harness()
        harness.destination.find_contact.side_effect = RuntimeError("invalid email")
        envelope = await harness.outbox.enqueue(
            "a@b.com", {"plan": _change("pro")}, provenance=_source_provenance()
        )

        await harness.dispatcher.drain()

        stored = await harness.store.get(envelope.id)
        assert stored.status == EnvelopeStatus.FAILED
        assert stored.error["stage"] == "preflight_check"
        harness.destination.update_contact.assert_not_awaited()
