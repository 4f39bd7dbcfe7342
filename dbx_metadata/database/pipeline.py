"""Generic metadata extraction pipeline.

``ExtractionPipeline`` walks a database through the standard catalog in a
fixed order: schemas, then per schema its tables, views and procedures, then
per table its columns, primary key, foreign keys, indexes, triggers and
comment. Vendors do not subclass it. They hand it a ``Dialect`` whose
optional hook functions fill in what the standard catalog cannot report.

Failure policy:

* a permission-denied error on a schema skips that schema with a warning
* any error on one table or view skips that object with a warning
* procedure and schema-trigger failures become warnings
* table comments, table triggers, row counts, column comments and
  procedure parameters are best-effort and fail silently (DEBUG log)
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional, List, Dict, Any, Callable, Iterator

from ..errors import MetadataExtractionError
from . import codes
from .base import MetadataStrategy, WarningLog
from .connection import CatalogConnection, Row
from .models import (
    Column,
    Database,
    DatabaseBuilder,
    ForeignKey,
    ForeignKeyAction,
    ForeignKeyBuilder,
    Index,
    IndexBuilder,
    IndexType,
    ParameterMode,
    PrimaryKey,
    Procedure,
    ProcedureBuilder,
    ProcedureType,
    Schema,
    SchemaBuilder,
    SortOrder,
    Table,
    TableBuilder,
    TableType,
    Trigger,
    View,
    sort_columns,
)

logger = logging.getLogger(__name__)


FOREIGN_KEY_ACTIONS = {
    codes.ImportedKeyRule.CASCADE: ForeignKeyAction.CASCADE,
    codes.ImportedKeyRule.RESTRICT: ForeignKeyAction.RESTRICT,
    codes.ImportedKeyRule.SET_NULL: ForeignKeyAction.SET_NULL,
    codes.ImportedKeyRule.NO_ACTION: ForeignKeyAction.NO_ACTION,
    codes.ImportedKeyRule.SET_DEFAULT: ForeignKeyAction.SET_DEFAULT,
}

INDEX_TYPES = {
    codes.IndexInfoType.CLUSTERED: IndexType.CLUSTERED,
    codes.IndexInfoType.HASHED: IndexType.HASH,
    codes.IndexInfoType.OTHER: IndexType.BTREE,
}

SORT_ORDERS = {
    "A": SortOrder.ASC,
    "D": SortOrder.DESC,
}

PARAMETER_MODES = {
    codes.ProcedureColumnType.IN: ParameterMode.IN,
    codes.ProcedureColumnType.INOUT: ParameterMode.INOUT,
    codes.ProcedureColumnType.OUT: ParameterMode.OUT,
    codes.ProcedureColumnType.RETURN: ParameterMode.RETURN,
}


def _as_int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _is_yes(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().upper() == "YES"


def map_foreign_key_action(rule: Any) -> ForeignKeyAction:
    """Map an imported-key rule code; unknown codes mean NO_ACTION."""
    return FOREIGN_KEY_ACTIONS.get(_as_int(rule, -1), ForeignKeyAction.NO_ACTION)


def map_index_type(type_code: Any) -> IndexType:
    """Map an index-info type code; unknown codes mean OTHER."""
    return INDEX_TYPES.get(_as_int(type_code, -1), IndexType.OTHER)


def map_sort_order(asc_or_desc: Optional[str]) -> SortOrder:
    if not asc_or_desc:
        return SortOrder.UNKNOWN
    return SORT_ORDERS.get(asc_or_desc.strip().upper(), SortOrder.UNKNOWN)


def map_parameter_mode(column_type: Any) -> ParameterMode:
    return PARAMETER_MODES.get(_as_int(column_type, -1), ParameterMode.IN)


def _reason(exc: BaseException) -> str:
    if isinstance(exc, MetadataExtractionError) and exc.cause is not None:
        return str(exc.cause)
    return str(exc)


@contextmanager
def _operation(message: str, operation: str, object_name: Optional[str]) -> Iterator[None]:
    """Tag any failure inside the block with the operation and object name."""
    try:
        yield
    except MetadataExtractionError:
        raise
    except Exception as e:
        raise MetadataExtractionError(message, operation, object_name, cause=e) from e


@dataclass(frozen=True)
class HookContext:
    """What a dialect hook gets to work with."""
    connection: CatalogConnection
    warnings: Optional[WarningLog] = None

    def query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Row]:
        return self.connection.query(sql, params)

    def query_value(self, sql: str, params: Optional[Dict[str, Any]] = None, key: Optional[str] = None) -> Any:
        """Return one value of the first row, or None when there are no rows."""
        rows = self.connection.query(sql, params)
        if not rows:
            return None
        row = rows[0]
        if key is not None:
            return row.get(key)
        return next(iter(row.values()), None)

    def warn(self, message: str) -> None:
        if self.warnings is not None:
            self.warnings.add(message)
        else:
            logger.warning(message)


# Hook signatures. ``schema`` is the logical schema name, ``name`` the object.
SchemaFilter = Callable[[str], bool]
ObjectHook = Callable[[HookContext, str, str], Any]
SchemaHook = Callable[[HookContext, str], Any]


def _always(product_name: str) -> bool:
    return True


@dataclass(frozen=True)
class Dialect:
    """Vendor identity plus optional hooks for the extraction pipeline.

    Every hook left as ``None`` keeps the generic behaviour, which for the
    vendor-only facts (comments, definitions, triggers) means "absent".

    Attributes:
        vendor_name: Unique vendor identity
        supports: Predicate over the lower-cased product name
        is_fallback: Matches anything and is resolved last
        include_schema: Extra schema filter applied after the empty-name check
        list_schema_names: Replaces schema enumeration (e.g. catalogs as schemas)
        catalog_for_schema: Catalog qualifier for standard queries
        schema_for_query: Schema qualifier for standard queries
        table_comment: (ctx, schema, table) -> comment
        column_comments: (ctx, schema, table) -> {column: comment}
        view_definition: (ctx, schema, view) -> definition text
        view_updatable: (ctx, schema, view) -> bool
        view_comment: (ctx, schema, view) -> comment
        table_triggers: (ctx, schema, table) -> [Trigger]
        schema_triggers: (ctx, schema) -> [Trigger]
        procedures: (ctx, schema) -> [Procedure]
        procedures_fall_back: Use standard procedure listing when ``procedures`` fails
        row_count: (ctx, schema, table) -> estimated rows
        schema_owner: (ctx, schema) -> owner name
    """
    vendor_name: str
    supports: SchemaFilter = _always
    is_fallback: bool = False
    include_schema: Optional[SchemaFilter] = None
    list_schema_names: Optional[Callable[[HookContext], List[str]]] = None
    catalog_for_schema: Optional[Callable[[str], Optional[str]]] = None
    schema_for_query: Optional[Callable[[str], Optional[str]]] = None
    table_comment: Optional[ObjectHook] = None
    column_comments: Optional[ObjectHook] = None
    view_definition: Optional[ObjectHook] = None
    view_updatable: Optional[ObjectHook] = None
    view_comment: Optional[ObjectHook] = None
    table_triggers: Optional[ObjectHook] = None
    schema_triggers: Optional[SchemaHook] = None
    procedures: Optional[SchemaHook] = None
    procedures_fall_back: bool = False
    row_count: Optional[ObjectHook] = None
    schema_owner: Optional[SchemaHook] = None


class ExtractionPipeline(MetadataStrategy):
    """Metadata strategy driven by the standard catalog and a vendor dialect."""

    def __init__(self, dialect: Dialect):
        self.dialect = dialect

    @property
    def vendor_name(self) -> str:
        return self.dialect.vendor_name

    @property
    def is_fallback(self) -> bool:
        return self.dialect.is_fallback

    def supports(self, product_name: str) -> bool:
        if product_name is None:
            return self.dialect.is_fallback
        return bool(self.dialect.supports(product_name.lower()))

    # ------------------------------------------------------------------
    # Qualifiers
    # ------------------------------------------------------------------

    def catalog_for_schema(self, schema_name: str) -> Optional[str]:
        if self.dialect.catalog_for_schema is None:
            return None
        return self.dialect.catalog_for_schema(schema_name)

    def schema_for_query(self, schema_name: str) -> Optional[str]:
        if self.dialect.schema_for_query is None:
            return schema_name
        return self.dialect.schema_for_query(schema_name)

    def should_include_schema(self, schema_name: Optional[str]) -> bool:
        if not schema_name:
            return False
        if self.dialect.include_schema is None:
            return True
        return bool(self.dialect.include_schema(schema_name))

    # ------------------------------------------------------------------
    # Database and schema level
    # ------------------------------------------------------------------

    def explore(self, connection: CatalogConnection) -> Database:
        warnings = WarningLog()

        with _operation("Failed to explore database", "explore", None):
            info = connection.product_info()

        builder = DatabaseBuilder(
            product_name=info.product_name,
            product_version=info.product_version,
            driver_name=info.driver_name,
            driver_version=info.driver_version,
            url=info.url,
            user_name=info.user_name,
        )

        for schema_name in self.list_schemas(connection):
            try:
                builder.schemas.append(self.extract_schema(connection, schema_name, warnings))
            except MetadataExtractionError as e:
                if not e.is_permission_error:
                    raise
                warnings.add(f"Permission denied for schema: {schema_name}")

        builder.warnings = warnings.messages
        return builder.build()

    def list_schemas(self, connection: CatalogConnection) -> List[str]:
        with _operation("Failed to list schemas", "list_schemas", None):
            if self.dialect.list_schema_names is not None:
                names = self.dialect.list_schema_names(HookContext(connection))
            else:
                catalog = connection.standard_catalog()
                names = catalog.get_schemas()
                if not names:
                    # Vendors that model databases as catalogs
                    names = catalog.get_catalogs()

        return sorted(name for name in names if self.should_include_schema(name))

    def extract_schema(
        self,
        connection: CatalogConnection,
        schema_name: str,
        warnings: Optional[WarningLog] = None,
    ) -> Schema:
        if warnings is None:
            warnings = WarningLog()
        catalog = self.catalog_for_schema(schema_name)
        schema = self.schema_for_query(schema_name)
        standard = connection.standard_catalog()

        with _operation(f"Failed to extract schema: {schema_name}", "extract_schema", schema_name):
            table_rows = standard.get_tables(catalog, schema, [codes.TABLE])
            view_rows = standard.get_tables(catalog, schema, [codes.VIEW])

        builder = SchemaBuilder(name=schema_name, catalog=catalog)

        for row in table_rows:
            name = row["table_name"]
            try:
                builder.tables.append(self.extract_table(connection, catalog, schema, name))
            except MetadataExtractionError as e:
                logger.debug("Table %s failed", name, exc_info=True)
                warnings.add(f"Failed to extract table {name}: {_reason(e)}")

        for row in view_rows:
            name = row["table_name"]
            try:
                builder.views.append(self.extract_view(connection, catalog, schema, name))
            except MetadataExtractionError as e:
                logger.debug("View %s failed", name, exc_info=True)
                warnings.add(f"Failed to extract view {name}: {_reason(e)}")

        try:
            builder.procedures.extend(self.extract_procedures(connection, catalog, schema, warnings))
        except MetadataExtractionError as e:
            warnings.add(f"Failed to extract procedures for schema {schema_name}: {_reason(e)}")

        ctx = HookContext(connection, warnings)
        builder.owner = self._best_effort("schema owner", schema_name, self.dialect.schema_owner, ctx, schema_name)
        return builder.build()

    # ------------------------------------------------------------------
    # Object level
    # ------------------------------------------------------------------

    def extract_table(
        self,
        connection: CatalogConnection,
        catalog: Optional[str],
        schema: Optional[str],
        table_name: str,
    ) -> Table:
        owner = _owner(catalog, schema)
        builder = TableBuilder(name=table_name, type=TableType.TABLE)

        with _operation(f"Failed to extract table: {table_name}", "extract_table", table_name):
            columns = self.extract_columns(connection, catalog, schema, table_name)
            primary_key = self.extract_primary_key(connection, catalog, schema, table_name)
            if primary_key is not None:
                key_columns = set(primary_key.columns)
                columns = [c.with_primary_key() if c.name in key_columns else c for c in columns]
            builder.columns = columns
            builder.primary_key = primary_key
            builder.foreign_keys = self.extract_foreign_keys(connection, catalog, schema, table_name)
            builder.indexes = self.extract_indexes(connection, catalog, schema, table_name)

        ctx = HookContext(connection)
        builder.triggers = self._best_effort(
            "triggers", table_name, self.dialect.table_triggers, ctx, owner, table_name, default=[]
        )
        builder.comment = self._best_effort(
            "table comment", table_name, self.dialect.table_comment, ctx, owner, table_name
        )
        builder.row_count = self._best_effort(
            "row count", table_name, self.dialect.row_count, ctx, owner, table_name
        )
        return builder.build()

    def extract_columns(
        self,
        connection: CatalogConnection,
        catalog: Optional[str],
        schema: Optional[str],
        table_name: str,
    ) -> List[Column]:
        with _operation(f"Failed to extract columns for table: {table_name}", "extract_columns", table_name):
            rows = connection.standard_catalog().get_columns(catalog, schema, table_name)
            columns = sort_columns(self._column_from_row(row) for row in rows)

        comments = self._best_effort(
            "column comments",
            table_name,
            self.dialect.column_comments,
            HookContext(connection),
            _owner(catalog, schema),
            table_name,
            default={},
        )
        return [self._enhance_comment(column, comments) for column in columns]

    @staticmethod
    def _column_from_row(row: Row) -> Column:
        size = _as_int(row.get("column_size"))
        return Column(
            name=row["column_name"],
            data_type=row.get("type_name"),
            size=size,
            precision=size,
            scale=_as_int(row.get("decimal_digits")),
            nullable=_is_yes(row.get("is_nullable")),
            auto_increment=_is_yes(row.get("is_autoincrement")),
            default_value=row.get("column_default"),
            comment=row.get("remarks") or None,
            ordinal_position=_as_int(row.get("ordinal_position")),
        )

    @staticmethod
    def _enhance_comment(column: Column, comments: Dict[str, str]) -> Column:
        if column.comment:
            return column
        comment = comments.get(column.name) if comments else None
        if not comment:
            return column
        return column.with_comment(comment)

    def extract_primary_key(
        self,
        connection: CatalogConnection,
        catalog: Optional[str],
        schema: Optional[str],
        table_name: str,
    ) -> Optional[PrimaryKey]:
        with _operation(f"Failed to extract primary key for table: {table_name}", "extract_primary_key", table_name):
            rows = connection.standard_catalog().get_primary_keys(catalog, schema, table_name)

        if not rows:
            return None

        name = None
        by_sequence = {}
        for row in rows:
            name = row.get("pk_name") or name
            by_sequence[_as_int(row.get("key_seq"))] = row["column_name"]
        return PrimaryKey(name=name, columns=tuple(by_sequence[k] for k in sorted(by_sequence)))

    def extract_foreign_keys(
        self,
        connection: CatalogConnection,
        catalog: Optional[str],
        schema: Optional[str],
        table_name: str,
    ) -> List[ForeignKey]:
        with _operation(f"Failed to extract foreign keys for table: {table_name}", "extract_foreign_keys", table_name):
            rows = connection.standard_catalog().get_imported_keys(catalog, schema, table_name)

        builders: Dict[str, ForeignKeyBuilder] = {}
        for row in rows:
            column = row.get("fkcolumn_name")
            name = row.get("fk_name") or f"FK_{table_name}_{column}"
            builder = builders.get(name)
            if builder is None:
                builder = ForeignKeyBuilder(
                    name=name,
                    referenced_schema=row.get("pktable_schema"),
                    referenced_table=row.get("pktable_name"),
                    on_update=map_foreign_key_action(row.get("update_rule")),
                    on_delete=map_foreign_key_action(row.get("delete_rule")),
                )
                builders[name] = builder
            builder.add_column_pair(column, row.get("pkcolumn_name"))

        return [b.build() for b in builders.values()]

    def extract_indexes(
        self,
        connection: CatalogConnection,
        catalog: Optional[str],
        schema: Optional[str],
        table_name: str,
    ) -> List[Index]:
        with _operation(f"Failed to extract indexes for table: {table_name}", "extract_indexes", table_name):
            rows = connection.standard_catalog().get_index_info(catalog, schema, table_name)

        builders: Dict[str, IndexBuilder] = {}
        for row in rows:
            name = row.get("index_name")
            if name is None:
                # table statistics row
                continue
            builder = builders.get(name)
            if builder is None:
                builder = IndexBuilder(
                    name=name,
                    unique=not bool(row.get("non_unique")),
                    type=map_index_type(row.get("type")),
                    filter_condition=row.get("filter_condition"),
                )
                builders[name] = builder
            column = row.get("column_name")
            if column is not None:
                builder.add_column(
                    column,
                    map_sort_order(row.get("asc_or_desc")),
                    _as_int(row.get("ordinal_position")),
                )

        return [b.build() for b in builders.values()]

    def extract_triggers(
        self,
        connection: CatalogConnection,
        catalog: Optional[str],
        schema: Optional[str],
        warnings: Optional[WarningLog] = None,
    ) -> List[Trigger]:
        if self.dialect.schema_triggers is None:
            return []
        owner = _owner(catalog, schema)
        ctx = HookContext(connection, warnings)
        try:
            return list(self.dialect.schema_triggers(ctx, owner))
        except Exception as e:
            ctx.warn(f"Failed to extract triggers for schema {owner}: {e}")
            return []

    def extract_procedures(
        self,
        connection: CatalogConnection,
        catalog: Optional[str],
        schema: Optional[str],
        warnings: Optional[WarningLog] = None,
    ) -> List[Procedure]:
        if self.dialect.procedures is None:
            return self.extract_standard_procedures(connection, catalog, schema)

        owner = _owner(catalog, schema)
        ctx = HookContext(connection, warnings)
        try:
            procedures = list(self.dialect.procedures(ctx, owner))
        except Exception as e:
            if self.dialect.procedures_fall_back:
                logger.debug("%s procedure query failed, using standard catalog: %s", self.vendor_name, e)
                return self.extract_standard_procedures(connection, catalog, schema)
            ctx.warn(f"Failed to extract procedures: {e}")
            return []
        return sorted(procedures, key=lambda p: p.name)

    def extract_standard_procedures(
        self,
        connection: CatalogConnection,
        catalog: Optional[str],
        schema: Optional[str],
    ) -> List[Procedure]:
        """List procedures through the standard catalog only."""
        standard = connection.standard_catalog()
        with _operation("Failed to extract procedures", "extract_procedures", schema):
            rows = standard.get_procedures(catalog, schema)

        procedures = []
        for row in rows:
            name = row["procedure_name"]
            returns_result = _as_int(row.get("procedure_type")) == codes.ProcedureResult.RETURNS_RESULT
            builder = ProcedureBuilder(
                name=name,
                type=ProcedureType.FUNCTION if returns_result else ProcedureType.PROCEDURE,
                comment=row.get("remarks"),
            )
            try:
                for param in standard.get_procedure_columns(catalog, schema, name):
                    builder.add_parameter(
                        param.get("column_name"),
                        param.get("type_name"),
                        map_parameter_mode(param.get("column_type")),
                        _as_int(param.get("ordinal_position")),
                    )
            except Exception as e:
                logger.debug("Could not extract parameters for procedure %s: %s", name, e)
                builder.parameters = []
            procedures.append(builder.build())

        return sorted(procedures, key=lambda p: p.name)

    def extract_view(
        self,
        connection: CatalogConnection,
        catalog: Optional[str],
        schema: Optional[str],
        view_name: str,
    ) -> View:
        with _operation(f"Failed to extract view: {view_name}", "extract_view", view_name):
            columns = self.extract_columns(connection, catalog, schema, view_name)

        owner = _owner(catalog, schema)
        ctx = HookContext(connection)
        definition = self._best_effort(
            "view definition", view_name, self.dialect.view_definition, ctx, owner, view_name
        )
        updatable = self._best_effort(
            "view updatable flag", view_name, self.dialect.view_updatable, ctx, owner, view_name
        )
        comment = self._best_effort(
            "view comment", view_name, self.dialect.view_comment, ctx, owner, view_name
        )
        return View(
            name=view_name,
            columns=tuple(columns),
            definition=definition,
            comment=comment,
            updatable=bool(updatable),
        )

    # ------------------------------------------------------------------

    @staticmethod
    def _best_effort(what: str, object_name: str, hook: Optional[Callable], *args, default=None):
        """Run an optional enrichment hook, degrading to ``default`` on any error."""
        if hook is None:
            return default
        try:
            result = hook(*args)
        except Exception as e:
            logger.debug("Could not extract %s for %s: %s", what, object_name, e)
            return default
        return default if result is None else result


def _owner(catalog: Optional[str], schema: Optional[str]) -> Optional[str]:
    """Logical schema name for hook queries."""
    return schema if schema is not None else catalog
