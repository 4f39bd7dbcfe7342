"""Contracts for the connection the extraction pipeline reads from.

The pipeline never talks to a driver directly. It consumes a
``CatalogConnection``, which exposes product identity, a vendor-neutral
``StandardCatalog`` and a way to run parameterised read queries against the
vendor's own system tables.

Rows are plain dicts with lower-case keys. Keys a driver cannot report are
simply left out.
"""

from dataclasses import dataclass
from typing import Optional, List, Dict, Any, Sequence, Protocol

Row = Dict[str, Any]


@dataclass(frozen=True)
class ProductInfo:
    """Identity of the database product behind a connection."""
    product_name: str
    product_version: Optional[str] = None
    driver_name: Optional[str] = None
    driver_version: Optional[str] = None
    url: Optional[str] = None
    user_name: Optional[str] = None


class StandardCatalog(Protocol):
    """Vendor-neutral introspection interface.

    ``catalog`` and ``schema`` qualifiers may be ``None``, meaning "do not
    narrow by this qualifier".
    """

    def get_catalogs(self) -> List[str]:
        ...

    def get_schemas(self) -> List[str]:
        ...

    def get_tables(
        self,
        catalog: Optional[str],
        schema: Optional[str],
        table_types: Sequence[str],
    ) -> List[Row]:
        """Rows carry ``table_name``, ``table_type`` and optionally ``remarks``."""
        ...

    def get_columns(self, catalog: Optional[str], schema: Optional[str], table: str) -> List[Row]:
        """Rows carry ``column_name``, ``type_name``, ``column_size``,
        ``decimal_digits``, ``is_nullable`` and ``ordinal_position``, and
        optionally ``column_default``, ``is_autoincrement`` and ``remarks``.
        Flag columns use ``"YES"``/``"NO"``."""
        ...

    def get_primary_keys(self, catalog: Optional[str], schema: Optional[str], table: str) -> List[Row]:
        """Rows carry ``column_name``, ``key_seq`` and ``pk_name``."""
        ...

    def get_imported_keys(self, catalog: Optional[str], schema: Optional[str], table: str) -> List[Row]:
        """Rows carry ``fk_name``, ``fkcolumn_name``, ``pkcolumn_name``,
        ``pktable_schema``, ``pktable_name``, ``update_rule`` and
        ``delete_rule``."""
        ...

    def get_index_info(self, catalog: Optional[str], schema: Optional[str], table: str) -> List[Row]:
        """Rows carry ``index_name``, ``non_unique``, ``type``,
        ``column_name``, ``asc_or_desc``, ``ordinal_position`` and
        ``filter_condition``."""
        ...

    def get_procedures(self, catalog: Optional[str], schema: Optional[str]) -> List[Row]:
        """Rows carry ``procedure_name``, ``procedure_type`` and ``remarks``."""
        ...

    def get_procedure_columns(
        self,
        catalog: Optional[str],
        schema: Optional[str],
        procedure: str,
    ) -> List[Row]:
        """Rows carry ``column_name``, ``type_name`` and ``column_type``."""
        ...


class CatalogConnection(Protocol):
    """A live connection as seen by the extraction pipeline."""

    def product_info(self) -> ProductInfo:
        ...

    def standard_catalog(self) -> StandardCatalog:
        ...

    def query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Row]:
        """Run a read-only query with named ``:param`` binds.

        Implementations release the cursor before returning, also when the
        query fails.
        """
        ...
