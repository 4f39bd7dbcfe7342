"""dbx-metadata - relational database metadata explorer."""

from .errors import CatalogError, MetadataExtractionError
from .database import (
    Database,
    Schema,
    Table,
    View,
    Column,
    MetadataStrategy,
    StrategyRegistry,
    SqlAlchemyCatalog,
    get_registry,
    register_strategy,
)
from .explorer import DatabaseExplorer, connect, create_explorer
from .export import ExportOptions, ExportResult, export_metadata, filter_metadata, to_dict, to_json

__version__ = "0.1.0"

__all__ = [
    "CatalogError",
    "MetadataExtractionError",
    "Database",
    "Schema",
    "Table",
    "View",
    "Column",
    "MetadataStrategy",
    "StrategyRegistry",
    "SqlAlchemyCatalog",
    "get_registry",
    "register_strategy",
    "DatabaseExplorer",
    "connect",
    "create_explorer",
    "ExportOptions",
    "ExportResult",
    "export_metadata",
    "filter_metadata",
    "to_dict",
    "to_json",
]
