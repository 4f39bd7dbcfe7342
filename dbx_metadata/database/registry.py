"""Strategy registry: maps a reported product name to a metadata strategy."""

import logging
import threading
from typing import Optional, List, Iterable

from ..errors import MetadataExtractionError
from .base import MetadataStrategy
from .generic import generic_strategy
from .mssql import mssql_strategy
from .mysql import mysql_strategy
from .postgres import postgres_strategy

logger = logging.getLogger(__name__)


class StrategyRegistry:
    """Ordered list of strategies, fallback strategies always at the end.

    Registering a strategy replaces any strategy with the same vendor name
    and puts the new one first, so later registrations win over earlier
    ones. All access is serialized on one lock.
    """

    def __init__(self, strategies: Optional[Iterable[MetadataStrategy]] = None):
        self._lock = threading.RLock()
        self._strategies: List[MetadataStrategy] = []
        for strategy in strategies or ():
            self.register(strategy)

    @classmethod
    def with_defaults(cls) -> "StrategyRegistry":
        """Create a registry holding the built-in vendor strategies."""
        return cls([
            postgres_strategy(),
            mysql_strategy(),
            mssql_strategy(),
            generic_strategy(),
        ])

    def register(self, strategy: MetadataStrategy) -> None:
        if strategy is None:
            raise ValueError("Strategy cannot be None")
        with self._lock:
            self._strategies = [s for s in self._strategies if s.vendor_name != strategy.vendor_name]
            if strategy.is_fallback:
                self._strategies.append(strategy)
            else:
                self._strategies.insert(0, strategy)
        logger.debug("Registered metadata strategy %s", strategy.vendor_name)

    @property
    def strategies(self) -> List[MetadataStrategy]:
        """Snapshot of the registered strategies in resolution order."""
        with self._lock:
            return list(self._strategies)

    def resolve(self, product_name: Optional[str]) -> MetadataStrategy:
        """Return the first strategy that supports ``product_name``.

        Raises:
            MetadataExtractionError: If no strategy matches
        """
        normalized = (product_name or "").lower()
        with self._lock:
            for strategy in self._strategies:
                if strategy.supports(normalized):
                    logger.debug("Resolved %s to strategy %s", product_name, strategy.vendor_name)
                    return strategy
        raise MetadataExtractionError(
            f"No strategy found for database: {product_name}", "resolve_strategy", product_name
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._strategies)


_registry: Optional[StrategyRegistry] = None
_registry_lock = threading.Lock()


def get_registry() -> StrategyRegistry:
    """Get or create the process-wide strategy registry."""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = StrategyRegistry.with_defaults()
        return _registry


def register_strategy(strategy: MetadataStrategy) -> None:
    """Register a strategy with the process-wide registry."""
    get_registry().register(strategy)
