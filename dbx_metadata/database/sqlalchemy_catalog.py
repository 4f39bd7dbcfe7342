"""Catalog connection backed by a SQLAlchemy connection.

SQLAlchemy's ``Inspector`` plays the part of the standard catalog: it
reflects schemas, tables, columns, keys and indexes the same way on every
backend. Vendor queries run through ``text()`` with named binds.
"""

import logging
from typing import Optional, List, Dict, Any, Sequence

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection
from sqlalchemy.engine.reflection import Inspector
from sqlalchemy.exc import CompileError

from . import codes
from .connection import ProductInfo, Row

logger = logging.getLogger(__name__)

# SQLAlchemy dialect name -> reported product name
PRODUCT_NAMES = {
    "postgresql": "PostgreSQL",
    "mysql": "MySQL",
    "mariadb": "MariaDB",
    "mssql": "Microsoft SQL Server",
    "sqlite": "SQLite",
    "oracle": "Oracle",
}

# Dialects that report databases as catalogs rather than schemas
CATALOG_DIALECTS = {"mysql", "mariadb"}

REFERENTIAL_ACTIONS = {
    "CASCADE": codes.ImportedKeyRule.CASCADE,
    "RESTRICT": codes.ImportedKeyRule.RESTRICT,
    "SET NULL": codes.ImportedKeyRule.SET_NULL,
    "NO ACTION": codes.ImportedKeyRule.NO_ACTION,
    "SET DEFAULT": codes.ImportedKeyRule.SET_DEFAULT,
}


def _rule_code(action: Optional[str]) -> int:
    if not action:
        return codes.ImportedKeyRule.NO_ACTION
    return REFERENTIAL_ACTIONS.get(action.upper(), codes.ImportedKeyRule.NO_ACTION)


def _yes_no(flag: bool) -> str:
    return "YES" if flag else "NO"


class SqlAlchemyCatalog:
    """``CatalogConnection`` and ``StandardCatalog`` over a SQLAlchemy connection.

    The connection is borrowed: this class never closes it. Reflection
    results are memoized by the inspector only until the next product,
    schema or table listing, where every traversal starts.
    """

    def __init__(self, connection: Connection):
        self._connection = connection
        self._inspector: Optional[Inspector] = None

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def inspector(self) -> Inspector:
        if self._inspector is None:
            self._inspector = inspect(self._connection)
        return self._inspector

    def _reset_reflection(self) -> None:
        if self._inspector is not None:
            self._inspector.clear_cache()

    @property
    def dialect_name(self) -> str:
        dialect = self._connection.dialect
        if dialect.name == "mysql" and getattr(dialect, "is_mariadb", False):
            return "mariadb"
        return dialect.name

    @property
    def _catalogs_as_schemas(self) -> bool:
        return self.dialect_name in CATALOG_DIALECTS

    # ------------------------------------------------------------------
    # CatalogConnection
    # ------------------------------------------------------------------

    def product_info(self) -> ProductInfo:
        self._reset_reflection()
        dialect = self._connection.dialect
        url = self._connection.engine.url
        version_info = dialect.server_version_info
        version = ".".join(str(part) for part in version_info) if version_info else None
        dbapi = getattr(dialect, "dbapi", None)
        return ProductInfo(
            product_name=PRODUCT_NAMES.get(self.dialect_name, self.dialect_name),
            product_version=version,
            driver_name=dialect.driver,
            driver_version=getattr(dbapi, "__version__", None),
            url=url.render_as_string(hide_password=True),
            user_name=url.username,
        )

    def standard_catalog(self) -> "SqlAlchemyCatalog":
        return self

    def query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Row]:
        result = self._connection.execute(text(sql), params or {})
        try:
            return [dict(row) for row in result.mappings()]
        finally:
            result.close()

    # ------------------------------------------------------------------
    # StandardCatalog
    # ------------------------------------------------------------------

    def get_catalogs(self) -> List[str]:
        self._reset_reflection()
        if self._catalogs_as_schemas:
            return list(self.inspector.get_schema_names())
        return []

    def get_schemas(self) -> List[str]:
        self._reset_reflection()
        if self._catalogs_as_schemas:
            return []
        return list(self.inspector.get_schema_names())

    @staticmethod
    def _owner(catalog: Optional[str], schema: Optional[str]) -> Optional[str]:
        return schema if schema is not None else catalog

    def get_tables(
        self,
        catalog: Optional[str],
        schema: Optional[str],
        table_types: Sequence[str],
    ) -> List[Row]:
        self._reset_reflection()
        owner = self._owner(catalog, schema)
        rows = []
        if codes.TABLE in table_types:
            for name in self.inspector.get_table_names(schema=owner):
                rows.append({"table_cat": catalog, "table_schem": schema, "table_name": name, "table_type": codes.TABLE})
        if codes.VIEW in table_types:
            for name in self.inspector.get_view_names(schema=owner):
                rows.append({"table_cat": catalog, "table_schem": schema, "table_name": name, "table_type": codes.VIEW})
        return rows

    def _type_name(self, sql_type) -> str:
        try:
            compiled = sql_type.compile(dialect=self._connection.dialect)
        except CompileError:
            return type(sql_type).__name__.upper()
        return compiled.split("(")[0].strip()

    def get_columns(self, catalog: Optional[str], schema: Optional[str], table: str) -> List[Row]:
        rows = []
        for position, column in enumerate(self.inspector.get_columns(table, schema=self._owner(catalog, schema)), 1):
            sql_type = column["type"]
            length = getattr(sql_type, "length", None)
            precision = getattr(sql_type, "precision", None)
            scale = getattr(sql_type, "scale", None)
            row = {
                "column_name": column["name"],
                "type_name": self._type_name(sql_type),
                "column_size": length if length is not None else precision,
                "decimal_digits": scale,
                "is_nullable": _yes_no(column.get("nullable", True)),
                "ordinal_position": position,
                "column_default": column.get("default"),
                "remarks": column.get("comment"),
            }
            if "autoincrement" in column:
                row["is_autoincrement"] = _yes_no(column["autoincrement"] is True)
            rows.append(row)
        return rows

    def get_primary_keys(self, catalog: Optional[str], schema: Optional[str], table: str) -> List[Row]:
        constraint = self.inspector.get_pk_constraint(table, schema=self._owner(catalog, schema)) or {}
        return [
            {"column_name": name, "key_seq": seq, "pk_name": constraint.get("name")}
            for seq, name in enumerate(constraint.get("constrained_columns") or [], 1)
        ]

    def get_imported_keys(self, catalog: Optional[str], schema: Optional[str], table: str) -> List[Row]:
        owner = self._owner(catalog, schema)
        rows = []
        for fk in self.inspector.get_foreign_keys(table, schema=owner):
            options = fk.get("options") or {}
            pairs = zip(fk.get("constrained_columns") or [], fk.get("referred_columns") or [])
            for seq, (column, referenced) in enumerate(pairs, 1):
                rows.append({
                    "fk_name": fk.get("name"),
                    "fkcolumn_name": column,
                    "pkcolumn_name": referenced,
                    "pktable_schema": fk.get("referred_schema") or owner,
                    "pktable_name": fk.get("referred_table"),
                    "key_seq": seq,
                    "update_rule": _rule_code(options.get("onupdate")),
                    "delete_rule": _rule_code(options.get("ondelete")),
                })
        return rows

    @staticmethod
    def _index_type(index: Dict[str, Any]) -> int:
        options = index.get("dialect_options") or {}
        if str(options.get("postgresql_using", "")).lower() == "hash":
            return codes.IndexInfoType.HASHED
        if options.get("mssql_clustered"):
            return codes.IndexInfoType.CLUSTERED
        return codes.IndexInfoType.OTHER

    @staticmethod
    def _filter_condition(index: Dict[str, Any]) -> Optional[str]:
        for key, value in (index.get("dialect_options") or {}).items():
            if key.endswith("_where") and value is not None:
                return str(value)
        return None

    def get_index_info(self, catalog: Optional[str], schema: Optional[str], table: str) -> List[Row]:
        rows = []
        for index in self.inspector.get_indexes(table, schema=self._owner(catalog, schema)):
            sorting = index.get("column_sorting") or {}
            for position, column in enumerate(index.get("column_names") or [], 1):
                rows.append({
                    "index_name": index.get("name"),
                    "non_unique": not index.get("unique", False),
                    "type": self._index_type(index),
                    "column_name": column,
                    "asc_or_desc": "D" if "desc" in sorting.get(column, ()) else "A",
                    "ordinal_position": position,
                    "filter_condition": self._filter_condition(index),
                })
        return rows

    def get_procedures(self, catalog: Optional[str], schema: Optional[str]) -> List[Row]:
        # SQLAlchemy does not reflect routines
        return []

    def get_procedure_columns(
        self,
        catalog: Optional[str],
        schema: Optional[str],
        procedure: str,
    ) -> List[Row]:
        return []
