"""Microsoft SQL Server dialect.

Comments are ``MS_Description`` extended properties; definitions come from
``OBJECT_DEFINITION``.
"""

import logging
from typing import Optional, List, Dict

from .models import (
    ParameterMode,
    Procedure,
    ProcedureBuilder,
    ProcedureType,
    Trigger,
    TriggerEvent,
    TriggerTiming,
)
from .pipeline import Dialect, ExtractionPipeline, HookContext

logger = logging.getLogger(__name__)

VENDOR_NAME = "MSSQL"

# Matched case-sensitively, as SQL Server reports them
EXCLUDED_SCHEMAS = {
    "db_accessadmin", "db_backupoperator", "db_datareader", "db_datawriter",
    "db_ddladmin", "db_denydatareader", "db_denydatawriter", "db_owner",
    "db_securityadmin", "guest", "INFORMATION_SCHEMA", "sys",
}

FUNCTION_OBJECT_TYPES = {"FN", "IF", "TF"}

TABLE_COMMENT_SQL = """
    SELECT CAST(ep.value AS NVARCHAR(MAX)) AS comment
    FROM sys.extended_properties ep
    JOIN sys.tables t ON ep.major_id = t.object_id
    JOIN sys.schemas s ON t.schema_id = s.schema_id
    WHERE ep.minor_id = 0
      AND ep.name = 'MS_Description'
      AND s.name = :schema
      AND t.name = :table
"""

COLUMN_COMMENTS_SQL = """
    SELECT c.name AS column_name,
           CAST(ep.value AS NVARCHAR(MAX)) AS comment
    FROM sys.extended_properties ep
    JOIN sys.columns c ON ep.major_id = c.object_id AND ep.minor_id = c.column_id
    JOIN sys.tables t ON c.object_id = t.object_id
    JOIN sys.schemas s ON t.schema_id = s.schema_id
    WHERE ep.name = 'MS_Description'
      AND s.name = :schema
      AND t.name = :table
"""

VIEW_COMMENT_SQL = """
    SELECT CAST(ep.value AS NVARCHAR(MAX)) AS comment
    FROM sys.extended_properties ep
    JOIN sys.views v ON ep.major_id = v.object_id
    JOIN sys.schemas s ON v.schema_id = s.schema_id
    WHERE ep.minor_id = 0
      AND ep.name = 'MS_Description'
      AND s.name = :schema
      AND v.name = :view
"""

VIEW_DEFINITION_SQL = """
    SELECT OBJECT_DEFINITION(OBJECT_ID(QUOTENAME(:schema) + '.' + QUOTENAME(:view))) AS definition
"""

TRIGGERS_SQL = """
    SELECT t.name AS trigger_name,
           tbl.name AS table_name,
           t.is_instead_of_trigger AS is_instead_of_trigger,
           te.type_desc AS event,
           t.is_disabled AS is_disabled,
           OBJECT_DEFINITION(t.object_id) AS definition
    FROM sys.triggers t
    JOIN sys.trigger_events te ON t.object_id = te.object_id
    JOIN sys.tables tbl ON t.parent_id = tbl.object_id
    JOIN sys.schemas s ON tbl.schema_id = s.schema_id
    WHERE s.name = :schema
"""

ROUTINES_SQL = """
    SELECT o.name AS name,
           RTRIM(o.type) AS object_type,
           OBJECT_DEFINITION(o.object_id) AS definition,
           CAST(ep.value AS NVARCHAR(MAX)) AS comment
    FROM sys.objects o
    JOIN sys.schemas s ON o.schema_id = s.schema_id
    LEFT JOIN sys.extended_properties ep ON ep.major_id = o.object_id
        AND ep.minor_id = 0 AND ep.name = 'MS_Description'
    WHERE o.type IN ('P', 'FN', 'IF', 'TF')
      AND s.name = :schema
    ORDER BY o.name
"""

PARAMETERS_SQL = """
    SELECT p.name AS parameter_name,
           TYPE_NAME(p.user_type_id) AS data_type,
           p.is_output AS is_output,
           p.parameter_id AS position
    FROM sys.parameters p
    JOIN sys.objects o ON p.object_id = o.object_id
    JOIN sys.schemas s ON o.schema_id = s.schema_id
    WHERE s.name = :schema AND o.name = :routine
    ORDER BY p.parameter_id
"""

ROW_COUNT_SQL = """
    SELECT SUM(p.rows) AS row_count
    FROM sys.partitions p
    JOIN sys.tables t ON p.object_id = t.object_id
    JOIN sys.schemas s ON t.schema_id = s.schema_id
    WHERE s.name = :schema AND t.name = :table AND p.index_id IN (0, 1)
"""

SCHEMA_OWNER_SQL = """
    SELECT USER_NAME(principal_id) AS owner
    FROM sys.schemas
    WHERE name = :schema
"""


def include_schema(schema_name: str) -> bool:
    return schema_name not in EXCLUDED_SCHEMAS


def supports(product_name: str) -> bool:
    return "microsoft sql server" in product_name or "sql server" in product_name


def table_comment(ctx: HookContext, schema: str, table: str) -> Optional[str]:
    return ctx.query_value(TABLE_COMMENT_SQL, {"schema": schema, "table": table}, "comment")


def column_comments(ctx: HookContext, schema: str, table: str) -> Dict[str, str]:
    rows = ctx.query(COLUMN_COMMENTS_SQL, {"schema": schema, "table": table})
    return {row["column_name"]: row["comment"] for row in rows}


def view_definition(ctx: HookContext, schema: str, view: str) -> Optional[str]:
    return ctx.query_value(VIEW_DEFINITION_SQL, {"schema": schema, "view": view}, "definition")


def view_comment(ctx: HookContext, schema: str, view: str) -> Optional[str]:
    return ctx.query_value(VIEW_COMMENT_SQL, {"schema": schema, "view": view}, "comment")


def _trigger_from_row(row) -> Trigger:
    return Trigger(
        name=row["trigger_name"],
        table_name=row["table_name"],
        timing=TriggerTiming.INSTEAD_OF if row.get("is_instead_of_trigger") else TriggerTiming.AFTER,
        event=TriggerEvent.__members__.get(row.get("event") or "", TriggerEvent.INSERT),
        definition=row.get("definition"),
        enabled=not row.get("is_disabled"),
    )


def _triggers(ctx: HookContext, schema: str, table: Optional[str] = None) -> List[Trigger]:
    sql = TRIGGERS_SQL
    params = {"schema": schema}
    if table is not None:
        sql += " AND tbl.name = :table"
        params["table"] = table
    sql += " ORDER BY tbl.name, t.name"
    return [_trigger_from_row(row) for row in ctx.query(sql, params)]


def table_triggers(ctx: HookContext, schema: str, table: str) -> List[Trigger]:
    return _triggers(ctx, schema, table)


def schema_triggers(ctx: HookContext, schema: str) -> List[Trigger]:
    return _triggers(ctx, schema)


def parameter_mode(name: str, is_output: bool) -> ParameterMode:
    if not is_output:
        return ParameterMode.IN
    return ParameterMode.OUT if name else ParameterMode.RETURN


def _add_parameters(ctx: HookContext, schema: str, builder: ProcedureBuilder) -> None:
    try:
        rows = ctx.query(PARAMETERS_SQL, {"schema": schema, "routine": builder.name})
    except Exception as e:
        logger.debug("Could not extract parameters for routine %s: %s", builder.name, e)
        return
    for row in rows:
        name = row.get("parameter_name") or ""
        if not name:
            # scalar function return slot
            continue
        builder.add_parameter(
            name[1:] if name.startswith("@") else name,
            row.get("data_type"),
            parameter_mode(name, bool(row.get("is_output"))),
            int(row.get("position") or 0),
        )


def procedures(ctx: HookContext, schema: str) -> List[Procedure]:
    result = []
    for row in ctx.query(ROUTINES_SQL, {"schema": schema}):
        is_function = (row.get("object_type") or "").strip() in FUNCTION_OBJECT_TYPES
        builder = ProcedureBuilder(
            name=row["name"],
            type=ProcedureType.FUNCTION if is_function else ProcedureType.PROCEDURE,
            definition=row.get("definition"),
            comment=row.get("comment"),
        )
        _add_parameters(ctx, schema, builder)
        result.append(builder.build())
    return result


def row_count(ctx: HookContext, schema: str, table: str) -> Optional[int]:
    value = ctx.query_value(ROW_COUNT_SQL, {"schema": schema, "table": table}, "row_count")
    return None if value is None else int(value)


def schema_owner(ctx: HookContext, schema: str) -> Optional[str]:
    return ctx.query_value(SCHEMA_OWNER_SQL, {"schema": schema}, "owner")


MSSQL = Dialect(
    vendor_name=VENDOR_NAME,
    supports=supports,
    include_schema=include_schema,
    table_comment=table_comment,
    column_comments=column_comments,
    view_definition=view_definition,
    view_comment=view_comment,
    table_triggers=table_triggers,
    schema_triggers=schema_triggers,
    procedures=procedures,
    row_count=row_count,
    schema_owner=schema_owner,
)


def mssql_strategy() -> ExtractionPipeline:
    """Create the SQL Server strategy."""
    return ExtractionPipeline(MSSQL)
