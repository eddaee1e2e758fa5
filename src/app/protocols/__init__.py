"""Protocolos e contratos do core da aplicação."""

from .baseline_store import BaselineStoreProtocol
from .delivery_store import ContactAuditStoreProtocol, DeliveryBaselineStoreProtocol
from .destination_client import DestinationClientProtocol
from .ignore_rule_store import IgnoreRuleStoreProtocol
from .outbox_store import OutboxStoreProtocol
from .rate_limit_store import AcquireResult, RateLimitStoreProtocol
from .source_adapter import DiscoveredSource, SourceAdapterProtocol, SourceField, SourceRow
from .source_store import SourceStoreProtocol

__all__ = [
    "AcquireResult",
    "BaselineStoreProtocol",
    "ContactAuditStoreProtocol",
    "DeliveryBaselineStoreProtocol",
    "DestinationClientProtocol",
    "DiscoveredSource",
    "IgnoreRuleStoreProtocol",
    "OutboxStoreProtocol",
    "RateLimitStoreProtocol",
    "SourceAdapterProtocol",
    "SourceField",
    "SourceRow",
    "SourceStoreProtocol",
]
