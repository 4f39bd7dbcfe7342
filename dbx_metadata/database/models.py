"""Database metadata models produced by the extraction pipeline.

Every entity is a frozen dataclass. Sequence fields are stored as tuples so
that a built tree cannot be changed after the fact; anything that needs a
late-discovered value (a primary-key flag, a vendor comment) gets a fresh
replacement object instead.

Builders are plain mutable dataclasses used while rows are being grouped.
They are meant to live inside a single extraction call and are finished with
``build()``.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Tuple, Iterable


def _freeze(obj, *names: str) -> None:
    """Replace list-valued fields of a frozen dataclass with tuples."""
    for name in names:
        object.__setattr__(obj, name, tuple(getattr(obj, name) or ()))


class TableType(str, Enum):
    """Kinds of relation reported by the catalog."""
    TABLE = "TABLE"
    VIEW = "VIEW"
    SYSTEM_TABLE = "SYSTEM_TABLE"
    GLOBAL_TEMPORARY = "GLOBAL_TEMPORARY"
    LOCAL_TEMPORARY = "LOCAL_TEMPORARY"
    ALIAS = "ALIAS"
    SYNONYM = "SYNONYM"


class ForeignKeyAction(str, Enum):
    """Referential action of a foreign key."""
    CASCADE = "CASCADE"
    SET_NULL = "SET_NULL"
    SET_DEFAULT = "SET_DEFAULT"
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO_ACTION"


class SortOrder(str, Enum):
    """Sort order of an index column."""
    ASC = "ASC"
    DESC = "DESC"
    UNKNOWN = "UNKNOWN"


class IndexType(str, Enum):
    """Physical kind of an index."""
    BTREE = "BTREE"
    HASH = "HASH"
    FULLTEXT = "FULLTEXT"
    SPATIAL = "SPATIAL"
    CLUSTERED = "CLUSTERED"
    NONCLUSTERED = "NONCLUSTERED"
    OTHER = "OTHER"


class TriggerTiming(str, Enum):
    BEFORE = "BEFORE"
    AFTER = "AFTER"
    INSTEAD_OF = "INSTEAD_OF"


class TriggerEvent(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    TRUNCATE = "TRUNCATE"


class ProcedureType(str, Enum):
    PROCEDURE = "PROCEDURE"
    FUNCTION = "FUNCTION"


class ParameterMode(str, Enum):
    IN = "IN"
    OUT = "OUT"
    INOUT = "INOUT"
    RETURN = "RETURN"


@dataclass(frozen=True)
class Column:
    """Represents a table or view column."""
    name: str
    data_type: Optional[str] = None
    size: int = 0
    precision: int = 0
    scale: int = 0
    nullable: bool = True
    primary_key: bool = False
    auto_increment: bool = False
    default_value: Optional[str] = None
    comment: Optional[str] = None
    ordinal_position: int = 0

    def __post_init__(self):
        if not self.name:
            raise ValueError("Column name cannot be empty")

    def with_primary_key(self, primary_key: bool = True) -> "Column":
        """Return a copy of this column with the primary-key flag set."""
        return replace(self, primary_key=primary_key)

    def with_comment(self, comment: Optional[str]) -> "Column":
        """Return a copy of this column carrying ``comment``."""
        return replace(self, comment=comment)

    @property
    def has_comment(self) -> bool:
        return bool(self.comment)


@dataclass(frozen=True)
class PrimaryKey:
    """Primary key of a table; columns are in key-sequence order."""
    name: Optional[str] = None
    columns: Tuple[str, ...] = ()

    def __post_init__(self):
        _freeze(self, "columns")


@dataclass(frozen=True)
class ForeignKey:
    """Imported key of a table.

    ``columns`` and ``referenced_columns`` are aligned by position. The
    referenced table is identified by name only.
    """
    name: str
    columns: Tuple[str, ...] = ()
    referenced_schema: Optional[str] = None
    referenced_table: Optional[str] = None
    referenced_columns: Tuple[str, ...] = ()
    on_update: ForeignKeyAction = ForeignKeyAction.NO_ACTION
    on_delete: ForeignKeyAction = ForeignKeyAction.NO_ACTION

    def __post_init__(self):
        _freeze(self, "columns", "referenced_columns")


@dataclass
class ForeignKeyBuilder:
    """Accumulates the rows of one named foreign key."""
    name: str
    referenced_schema: Optional[str] = None
    referenced_table: Optional[str] = None
    on_update: ForeignKeyAction = ForeignKeyAction.NO_ACTION
    on_delete: ForeignKeyAction = ForeignKeyAction.NO_ACTION
    columns: List[str] = field(default_factory=list)
    referenced_columns: List[str] = field(default_factory=list)

    def add_column_pair(self, column: str, referenced_column: str) -> "ForeignKeyBuilder":
        self.columns.append(column)
        self.referenced_columns.append(referenced_column)
        return self

    def build(self) -> ForeignKey:
        return ForeignKey(
            name=self.name,
            columns=tuple(self.columns),
            referenced_schema=self.referenced_schema,
            referenced_table=self.referenced_table,
            referenced_columns=tuple(self.referenced_columns),
            on_update=self.on_update,
            on_delete=self.on_delete,
        )


@dataclass(frozen=True)
class IndexColumn:
    """A column participating in an index."""
    name: str
    sort_order: SortOrder = SortOrder.ASC
    position: int = 0


@dataclass(frozen=True)
class Index:
    """Represents a table index."""
    name: str
    columns: Tuple[IndexColumn, ...] = ()
    unique: bool = False
    type: IndexType = IndexType.BTREE
    filter_condition: Optional[str] = None

    def __post_init__(self):
        _freeze(self, "columns")

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]


@dataclass
class IndexBuilder:
    """Accumulates the rows of one named index."""
    name: str
    unique: bool = False
    type: IndexType = IndexType.BTREE
    filter_condition: Optional[str] = None
    columns: List[IndexColumn] = field(default_factory=list)

    def add_column(self, name: str, sort_order: SortOrder, position: int) -> "IndexBuilder":
        self.columns.append(IndexColumn(name=name, sort_order=sort_order, position=position))
        return self

    def build(self) -> Index:
        return Index(
            name=self.name,
            columns=tuple(self.columns),
            unique=self.unique,
            type=self.type,
            filter_condition=self.filter_condition,
        )


@dataclass(frozen=True)
class Trigger:
    """Represents a table trigger."""
    name: str
    table_name: Optional[str] = None
    timing: TriggerTiming = TriggerTiming.AFTER
    event: TriggerEvent = TriggerEvent.INSERT
    definition: Optional[str] = None
    enabled: bool = True

    def __post_init__(self):
        if not self.name:
            raise ValueError("Trigger name cannot be empty")


@dataclass(frozen=True)
class ProcedureParameter:
    """A parameter of a stored procedure or function."""
    name: Optional[str]
    data_type: Optional[str] = None
    mode: ParameterMode = ParameterMode.IN
    position: int = 0


@dataclass(frozen=True)
class Procedure:
    """Represents a stored procedure or function."""
    name: str
    type: ProcedureType = ProcedureType.PROCEDURE
    parameters: Tuple[ProcedureParameter, ...] = ()
    return_type: Optional[str] = None
    definition: Optional[str] = None
    comment: Optional[str] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Procedure name cannot be empty")
        _freeze(self, "parameters")


@dataclass
class ProcedureBuilder:
    """Accumulates a procedure while its parameters are being read."""
    name: str
    type: ProcedureType = ProcedureType.PROCEDURE
    return_type: Optional[str] = None
    definition: Optional[str] = None
    comment: Optional[str] = None
    parameters: List[ProcedureParameter] = field(default_factory=list)

    def add_parameter(
        self,
        name: Optional[str],
        data_type: Optional[str],
        mode: ParameterMode,
        position: int,
    ) -> "ProcedureBuilder":
        self.parameters.append(ProcedureParameter(name, data_type, mode, position))
        return self

    def build(self) -> Procedure:
        return Procedure(
            name=self.name,
            type=self.type,
            parameters=tuple(self.parameters),
            return_type=self.return_type,
            definition=self.definition,
            comment=self.comment,
        )


def sort_columns(columns: Iterable[Column]) -> Tuple[Column, ...]:
    """Order columns by ordinal position (stable for equal positions)."""
    return tuple(sorted(columns, key=lambda c: c.ordinal_position))


@dataclass(frozen=True)
class Table:
    """Represents a database table."""
    name: str
    type: TableType = TableType.TABLE
    columns: Tuple[Column, ...] = ()
    primary_key: Optional[PrimaryKey] = None
    foreign_keys: Tuple[ForeignKey, ...] = ()
    indexes: Tuple[Index, ...] = ()
    triggers: Tuple[Trigger, ...] = ()
    comment: Optional[str] = None
    row_count: Optional[int] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Table name cannot be empty")
        _freeze(self, "columns", "foreign_keys", "indexes", "triggers")

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def get_column(self, name: str) -> Optional[Column]:
        """Find a column by exact name."""
        for column in self.columns:
            if column.name == name:
                return column
        return None


@dataclass
class TableBuilder:
    """Collects the parts of a table during one extraction."""
    name: str
    type: TableType = TableType.TABLE
    columns: List[Column] = field(default_factory=list)
    primary_key: Optional[PrimaryKey] = None
    foreign_keys: List[ForeignKey] = field(default_factory=list)
    indexes: List[Index] = field(default_factory=list)
    triggers: List[Trigger] = field(default_factory=list)
    comment: Optional[str] = None
    row_count: Optional[int] = None

    def build(self) -> Table:
        return Table(
            name=self.name,
            type=self.type,
            columns=sort_columns(self.columns),
            primary_key=self.primary_key,
            foreign_keys=tuple(self.foreign_keys),
            indexes=tuple(self.indexes),
            triggers=tuple(self.triggers),
            comment=self.comment,
            row_count=self.row_count,
        )


@dataclass(frozen=True)
class View:
    """Represents a database view."""
    name: str
    columns: Tuple[Column, ...] = ()
    definition: Optional[str] = None
    comment: Optional[str] = None
    updatable: bool = False

    def __post_init__(self):
        if not self.name:
            raise ValueError("View name cannot be empty")
        object.__setattr__(self, "columns", sort_columns(self.columns or ()))


@dataclass(frozen=True)
class Schema:
    """Represents a database schema."""
    name: str
    catalog: Optional[str] = None
    tables: Tuple[Table, ...] = ()
    views: Tuple[View, ...] = ()
    procedures: Tuple[Procedure, ...] = ()
    owner: Optional[str] = None

    def __post_init__(self):
        _freeze(self, "tables", "views", "procedures")

    def find_table(self, name: str) -> Optional[Table]:
        for table in self.tables:
            if table.name == name:
                return table
        return None

    def find_view(self, name: str) -> Optional[View]:
        for view in self.views:
            if view.name == name:
                return view
        return None


@dataclass
class SchemaBuilder:
    """Collects tables, views and procedures of one schema."""
    name: str
    catalog: Optional[str] = None
    owner: Optional[str] = None
    tables: List[Table] = field(default_factory=list)
    views: List[View] = field(default_factory=list)
    procedures: List[Procedure] = field(default_factory=list)

    def build(self) -> Schema:
        return Schema(
            name=self.name,
            catalog=self.catalog,
            tables=tuple(self.tables),
            views=tuple(self.views),
            procedures=tuple(self.procedures),
            owner=self.owner,
        )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Database:
    """Root of an extracted metadata tree."""
    product_name: Optional[str] = None
    product_version: Optional[str] = None
    driver_name: Optional[str] = None
    driver_version: Optional[str] = None
    url: Optional[str] = None
    user_name: Optional[str] = None
    schemas: Tuple[Schema, ...] = ()
    warnings: Tuple[str, ...] = ()
    extracted_at: datetime = field(default_factory=_utc_now, compare=False)

    def __post_init__(self):
        _freeze(self, "schemas", "warnings")

    def find_schema(self, name: str) -> Optional[Schema]:
        """Find a schema by exact name."""
        for schema in self.schemas:
            if schema.name == name:
                return schema
        return None

    def get_all_tables(self) -> List[Table]:
        """Get all tables across all schemas."""
        tables = []
        for schema in self.schemas:
            tables.extend(schema.tables)
        return tables

    @property
    def total_table_count(self) -> int:
        return sum(len(s.tables) for s in self.schemas)

    @property
    def total_view_count(self) -> int:
        return sum(len(s.views) for s in self.schemas)


@dataclass
class DatabaseBuilder:
    """Collects schemas and warnings of one exploration run."""
    product_name: Optional[str] = None
    product_version: Optional[str] = None
    driver_name: Optional[str] = None
    driver_version: Optional[str] = None
    url: Optional[str] = None
    user_name: Optional[str] = None
    schemas: List[Schema] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    extracted_at: Optional[datetime] = None

    def build(self) -> Database:
        return Database(
            product_name=self.product_name,
            product_version=self.product_version,
            driver_name=self.driver_name,
            driver_version=self.driver_version,
            url=self.url,
            user_name=self.user_name,
            schemas=tuple(self.schemas),
            warnings=tuple(self.warnings),
            extracted_at=self.extracted_at or _utc_now(),
        )
