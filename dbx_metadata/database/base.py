"""Abstract base class for metadata extraction strategies."""

import logging
from abc import ABC, abstractmethod
from typing import Optional, List, Iterator

from .connection import CatalogConnection
from .models import (
    Column,
    Database,
    ForeignKey,
    Index,
    PrimaryKey,
    Procedure,
    Schema,
    Table,
    Trigger,
    View,
)

logger = logging.getLogger(__name__)


class WarningLog:
    """Non-fatal gaps recorded during one exploration run.

    A fresh log is created for every ``explore()`` call and handed down to
    the steps that may skip objects, so concurrent runs never share one.
    """

    def __init__(self):
        self._messages: List[str] = []

    def add(self, message: str) -> None:
        logger.warning(message)
        self._messages.append(message)

    @property
    def messages(self) -> List[str]:
        return list(self._messages)

    def __iter__(self) -> Iterator[str]:
        return iter(self._messages)

    def __len__(self) -> int:
        return len(self._messages)


class MetadataStrategy(ABC):
    """Capability contract for extracting metadata from one database vendor.

    ``catalog`` and ``schema`` arguments are the qualifiers passed to the
    standard catalog; either may be ``None``.
    """

    @property
    @abstractmethod
    def vendor_name(self) -> str:
        """Human readable vendor identity, unique within a registry."""
        pass

    @property
    def is_fallback(self) -> bool:
        """True for the strategy that matches any product and is resolved last."""
        return False

    @abstractmethod
    def supports(self, product_name: str) -> bool:
        """Check whether this strategy handles the given product.

        Args:
            product_name: Product name as reported by the connection

        Returns:
            True if the strategy applies
        """
        pass

    @abstractmethod
    def explore(self, connection: CatalogConnection) -> Database:
        """Extract the full metadata tree of a database.

        Args:
            connection: Live catalog connection (not closed by the strategy)

        Returns:
            Database with every readable schema and the run's warnings
        """
        pass

    @abstractmethod
    def list_schemas(self, connection: CatalogConnection) -> List[str]:
        """Get user schema names in ascending order, system schemas excluded."""
        pass

    @abstractmethod
    def extract_schema(
        self,
        connection: CatalogConnection,
        schema_name: str,
        warnings: Optional[WarningLog] = None,
    ) -> Schema:
        """Extract tables, views and procedures of one schema.

        Args:
            connection: Live catalog connection
            schema_name: Schema name as returned by list_schemas()
            warnings: Log receiving skipped-object warnings

        Returns:
            Schema containing every object that could be extracted
        """
        pass

    @abstractmethod
    def extract_table(
        self,
        connection: CatalogConnection,
        catalog: Optional[str],
        schema: Optional[str],
        table_name: str,
    ) -> Table:
        pass

    @abstractmethod
    def extract_columns(
        self,
        connection: CatalogConnection,
        catalog: Optional[str],
        schema: Optional[str],
        table_name: str,
    ) -> List[Column]:
        pass

    @abstractmethod
    def extract_primary_key(
        self,
        connection: CatalogConnection,
        catalog: Optional[str],
        schema: Optional[str],
        table_name: str,
    ) -> Optional[PrimaryKey]:
        pass

    @abstractmethod
    def extract_foreign_keys(
        self,
        connection: CatalogConnection,
        catalog: Optional[str],
        schema: Optional[str],
        table_name: str,
    ) -> List[ForeignKey]:
        pass

    @abstractmethod
    def extract_indexes(
        self,
        connection: CatalogConnection,
        catalog: Optional[str],
        schema: Optional[str],
        table_name: str,
    ) -> List[Index]:
        pass

    @abstractmethod
    def extract_triggers(
        self,
        connection: CatalogConnection,
        catalog: Optional[str],
        schema: Optional[str],
        warnings: Optional[WarningLog] = None,
    ) -> List[Trigger]:
        """Get every trigger defined in a schema."""
        pass

    @abstractmethod
    def extract_procedures(
        self,
        connection: CatalogConnection,
        catalog: Optional[str],
        schema: Optional[str],
        warnings: Optional[WarningLog] = None,
    ) -> List[Procedure]:
        """Get stored procedures and functions of a schema, sorted by name."""
        pass

    @abstractmethod
    def extract_view(
        self,
        connection: CatalogConnection,
        catalog: Optional[str],
        schema: Optional[str],
        view_name: str,
    ) -> View:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.vendor_name!r})"
