"""Use case: reconciliar origens descobertas com o store.

Origens cujo id casa com uma regra de ignore do tipo não são
registradas. Origens já conhecidas só têm o nome atualizado.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from app.domain.source import Source, SourceType, build_source_key
from app.services.ignore_matcher import IgnoreMatcher

if TYPE_CHECKING:
    from app.protocols.ignore_rule_store import IgnoreRuleStoreProtocol
    from app.protocols.source_adapter import DiscoveredSource
    from app.protocols.source_store import SourceStoreProtocol
    from config.settings.sync.ignore import IgnoreSettings
    from config.settings.sync.polling import PollingSettings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class DiscoveryResult:
    created: int
    updated: int
    ignored: int


class DiscoverSourcesUseCase:
    def __init__(
        self,
        sources: SourceStoreProtocol,
        ignore_rules: IgnoreRuleStoreProtocol,
        polling: PollingSettings,
        ignore: IgnoreSettings,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._sources = sources
        self._ignore_rules = ignore_rules
        self._polling = polling
        self._ignore = ignore
        self._clock = clock

    async def execute(
        self,
        source_type: SourceType,
        discovered: list[DiscoveredSource],
    ) -> DiscoveryResult:
        matcher = IgnoreMatcher.for_rules(
            await self._ignore_rules.list_for(source_type),
            timeout=self._ignore.regex_timeout_seconds,
            fail_open=self._ignore.fail_open,
        )
        created = updated = ignored = 0
        now = self._clock()
        for item in discovered:
            if matcher.matches(item.source_id):
                ignored += 1
                continue
            key = build_source_key(source_type, item.source_id)
            existing = await self._sources.get(key)
            if existing is None:
                await self._sources.save(
                    Source(
                        source_type=source_type,
                        source_id=item.source_id,
                        poll_interval_seconds=self._polling.default_interval_seconds,
                        poll_jitter=self._polling.default_jitter,
                        next_poll_at=now,
                        display_name=item.name,
                        created_at=now,
                    )
                )
                created += 1
            elif item.name and existing.display_name != item.name:
                await self._sources.update(key, {"display_name": item.name})
                updated += 1

        logger.info(
            "sources_reconciled",
            extra={
                "source_type": source_type.value,
                "created": created,
                "updated": updated,
                "ignored": ignored,
            },
        )
        return DiscoveryResult(created=created, updated=updated, ignored=ignored)
