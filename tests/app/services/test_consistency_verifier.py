"""Testes do ConsistencyVerifier (unanimidade, sem voto de maioria)."""

from __future__ import annotations

from collections.abc import Awaitable
from unittest.mock import AsyncMock

import pytest

from app.services.consistency_verifier import ConsistencyVerifier
from utils.errors import ConsistencyError


def _generator(*values: object) -> AsyncMock:
    """Gerador que devolve os valores na ordem (exceções são levantadas)."""
    return AsyncMock(side_effect=list(values))


class TestConsistencyVerifier:
    def test_rejects_single_run(self) -> None:
        with pytest.raises(ValueError):
            ConsistencyVerifier(runs=1)

    @pytest.mark.asyncio
    async def test_unanimous_first_round(self) -> None:
        sleep = AsyncMock()
        verifier = ConsistencyVerifier(sleep=sleep)
        generate = _generator({"a": 1, "b": 2}, {"b": 2, "a": 1}, {"a": 1, "b": 2})

        result = await verifier.verify(generate)

        assert result == {"a": 1, "b": 2}
        assert generate.await_count == 3
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_majority_is_not_enough(self) -> None:
        """2 de 3 iguais em todas as rodadas → erro, nunca voto."""
        sleep = AsyncMock()
        verifier = ConsistencyVerifier(max_retries=2, retry_delay=1.0, sleep=sleep)
        generate = _generator(*(["x", "x", "y"] * 3))

        with pytest.raises(ConsistencyError) as exc_info:
            await verifier.verify(generate)

        assert exc_info.value.rounds == 3
        assert exc_info.value.reason == "divergent:2"
        assert generate.await_count == 9
        assert sleep.await_count == 2
        sleep.assert_awaited_with(1.0)

    @pytest.mark.asyncio
    async def test_retry_round_succeeds(self) -> None:
        verifier = ConsistencyVerifier(sleep=AsyncMock())
        generate = _generator("x", "y", "x", "z", "z", "z")

        assert await verifier.verify(generate) == "z"

    @pytest.mark.asyncio
    async def test_exception_fails_round(self) -> None:
        verifier = ConsistencyVerifier(max_retries=0, sleep=AsyncMock())
        generate = _generator("x", RuntimeError("boom"), "x")

        with pytest.raises(ConsistencyError) as exc_info:
            await verifier.verify(generate)

        assert exc_info.value.reason == "error:RuntimeError"
        assert exc_info.value.rounds == 1

    @pytest.mark.asyncio
    async def test_exception_round_then_success(self) -> None:
        verifier = ConsistencyVerifier(runs=2, sleep=AsyncMock())
        generate = _generator(ValueError("bad"), 1, [1, 2], [1, 2])

        assert await verifier.verify(generate) == [1, 2]

    @pytest.mark.asyncio
    async def test_synchronous_raise_fails_round(self) -> None:
        """Gerador que levanta antes de devolver a corrotina conta como rodada falha."""
        calls: list[int] = []

        async def _value() -> str:
            return "x"

        def generate() -> Awaitable[str]:
            calls.append(1)
            if len(calls) == 2:
                raise RuntimeError("sync")
            return _value()

        sleep = AsyncMock()
        verifier = ConsistencyVerifier(max_retries=1, sleep=sleep)

        assert await verifier.verify(generate) == "x"
        assert len(calls) == 6
        sleep.assert_awaited_once()
