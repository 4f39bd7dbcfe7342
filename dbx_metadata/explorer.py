"""High-level entry points: explorer wrapper, factory and connection helper."""

import logging
import time
from contextlib import contextmanager
from typing import Optional, List, Iterator

from sqlalchemy import create_engine

from .database.base import MetadataStrategy
from .database.connection import CatalogConnection
from .database.models import Database, Schema
from .database.registry import StrategyRegistry, get_registry
from .database.sqlalchemy_catalog import SqlAlchemyCatalog
from .errors import MetadataExtractionError
from .export import ExportOptions, ExportResult, export_metadata

logger = logging.getLogger(__name__)


class DatabaseExplorer:
    """Explores one connection with one strategy.

    The connection is borrowed and never closed here. Instances are not
    thread-safe; use one explorer per connection per thread.
    """

    def __init__(
        self,
        connection: CatalogConnection,
        strategy: MetadataStrategy,
        product_name: Optional[str] = None,
        product_version: Optional[str] = None,
        cache_enabled: bool = True,
    ):
        if connection is None:
            raise ValueError("Connection cannot be None")
        if strategy is None:
            raise ValueError("Strategy cannot be None")
        self.connection = connection
        self.strategy = strategy
        self.product_name = product_name
        self.product_version = product_version
        self.cache_enabled = cache_enabled
        self._cached: Optional[Database] = None

        logger.info(
            "Created DatabaseExplorer for %s %s using %s strategy",
            product_name, product_version, strategy.vendor_name,
        )

    @property
    def cached_metadata(self) -> Optional[Database]:
        return self._cached

    def explore(self) -> Database:
        """Extract the full metadata tree and remember it for export()."""
        logger.debug("Starting metadata exploration for %s %s", self.product_name, self.product_version)
        start = time.monotonic()

        try:
            metadata = self.strategy.explore(self.connection)
        except MetadataExtractionError as e:
            logger.error("Metadata exploration failed: %s", e)
            raise
        except Exception as e:
            logger.exception("Unexpected error during metadata exploration")
            raise MetadataExtractionError("Metadata exploration failed", "explore", cause=e) from e

        if self.cache_enabled:
            self._cached = metadata

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "Metadata exploration completed in %dms - %d schemas, %d tables, %d views",
            elapsed_ms,
            len(metadata.schemas),
            metadata.total_table_count,
            metadata.total_view_count,
        )
        if metadata.warnings:
            # Each warning was already logged when it was recorded
            logger.info("Exploration completed with %d warnings", len(metadata.warnings))

        return metadata

    def get_schema(self, schema_name: str) -> Optional[Schema]:
        """Extract one schema; None when access to it is denied."""
        if schema_name is None:
            raise ValueError("Schema name cannot be None")
        logger.debug("Extracting metadata for schema: %s", schema_name)
        try:
            return self.strategy.extract_schema(self.connection, schema_name)
        except MetadataExtractionError as e:
            if e.is_permission_error:
                logger.warning("Permission denied for schema: %s", schema_name)
                return None
            raise

    def list_schemas(self) -> List[str]:
        logger.debug("Listing schemas")
        return self.strategy.list_schemas(self.connection)

    def export(self, options: Optional[ExportOptions] = None) -> ExportResult:
        """Export the last explored tree, exploring first if there is none."""
        options = options or ExportOptions()
        logger.debug("Exporting metadata to %s format", options.format.value)
        metadata = self._cached if self._cached is not None else self.explore()
        return export_metadata(metadata, options)


def create_explorer(
    connection: CatalogConnection,
    strategy: Optional[MetadataStrategy] = None,
    registry: Optional[StrategyRegistry] = None,
    cache_enabled: bool = True,
) -> DatabaseExplorer:
    """Create an explorer for a connection.

    Args:
        connection: Live catalog connection
        strategy: Strategy to use; resolved from the product name when omitted
        registry: Registry to resolve from (default: process-wide registry)
        cache_enabled: Remember the last explored tree for export()

    Returns:
        DatabaseExplorer bound to the connection

    Raises:
        MetadataExtractionError: If the product cannot be detected
    """
    if connection is None:
        raise ValueError("Connection cannot be None")

    try:
        info = connection.product_info()
    except Exception as e:
        raise MetadataExtractionError("Failed to detect database vendor", "create_explorer", cause=e) from e

    if strategy is None:
        if registry is None:
            registry = get_registry()
        strategy = registry.resolve(info.product_name)

    return DatabaseExplorer(
        connection,
        strategy,
        product_name=info.product_name,
        product_version=info.product_version,
        cache_enabled=cache_enabled,
    )


@contextmanager
def connect(url: str, **engine_kwargs) -> Iterator[SqlAlchemyCatalog]:
    """Open a catalog connection for a SQLAlchemy database URL.

    Statements run in autocommit mode so one failed vendor query does not
    poison the rest of the exploration.
    """
    engine = create_engine(url, **engine_kwargs)
    try:
        with engine.connect() as connection:
            connection = connection.execution_options(isolation_level="AUTOCOMMIT")
            yield SqlAlchemyCatalog(connection)
    finally:
        engine.dispose()
