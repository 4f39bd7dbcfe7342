"""Database metadata extraction.

This module provides the metadata entities, the generic extraction pipeline
and vendor dialects for PostgreSQL, MySQL/MariaDB and SQL Server, with a
generic fallback for everything else.
"""

from .models import (
    Column,
    Database,
    ForeignKey,
    ForeignKeyAction,
    Index,
    IndexColumn,
    IndexType,
    ParameterMode,
    PrimaryKey,
    Procedure,
    ProcedureParameter,
    ProcedureType,
    Schema,
    SortOrder,
    Table,
    TableType,
    Trigger,
    TriggerEvent,
    TriggerTiming,
    View,
)
from .connection import CatalogConnection, ProductInfo, StandardCatalog
from .base import MetadataStrategy, WarningLog
from .pipeline import Dialect, ExtractionPipeline, HookContext
from .generic import generic_strategy
from .postgres import postgres_strategy
from .mysql import mysql_strategy
from .mssql import mssql_strategy
from .registry import StrategyRegistry, get_registry, register_strategy
from .sqlalchemy_catalog import SqlAlchemyCatalog

__all__ = [
    # Data models
    "Column",
    "Database",
    "ForeignKey",
    "ForeignKeyAction",
    "Index",
    "IndexColumn",
    "IndexType",
    "ParameterMode",
    "PrimaryKey",
    "Procedure",
    "ProcedureParameter",
    "ProcedureType",
    "Schema",
    "SortOrder",
    "Table",
    "TableType",
    "Trigger",
    "TriggerEvent",
    "TriggerTiming",
    "View",
    # Connection contract
    "CatalogConnection",
    "ProductInfo",
    "StandardCatalog",
    "SqlAlchemyCatalog",
    # Strategies
    "MetadataStrategy",
    "WarningLog",
    "Dialect",
    "ExtractionPipeline",
    "HookContext",
    "generic_strategy",
    "postgres_strategy",
    "mysql_strategy",
    "mssql_strategy",
    # Registry
    "StrategyRegistry",
    "get_registry",
    "register_strategy",
]
