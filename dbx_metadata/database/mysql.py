"""MySQL and MariaDB dialect.

MySQL has no schemas below the database level: every database is reported
as a catalog. Schema names are therefore read from the catalog list, passed
to standard queries as the catalog qualifier, and the schema qualifier stays
empty.
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

VENDOR_NAME = "MySQL"

EXCLUDED_SCHEMAS = {"information_schema", "mysql", "performance_schema", "sys"}

TABLE_COMMENT_SQL = """
    SELECT TABLE_COMMENT
    FROM information_schema.TABLES
    WHERE TABLE_SCHEMA = :schema AND TABLE_NAME = :table
"""

COLUMN_COMMENTS_SQL = """
    SELECT COLUMN_NAME, COLUMN_COMMENT
    FROM information_schema.COLUMNS
    WHERE TABLE_SCHEMA = :schema AND TABLE_NAME = :table AND COLUMN_COMMENT != ''
"""

VIEW_SQL = """
    SELECT VIEW_DEFINITION, IS_UPDATABLE
    FROM information_schema.VIEWS
    WHERE TABLE_SCHEMA = :schema AND TABLE_NAME = :view
"""

TRIGGERS_SQL = """
    SELECT TRIGGER_NAME, EVENT_OBJECT_TABLE, ACTION_TIMING, EVENT_MANIPULATION,
           ACTION_STATEMENT
    FROM information_schema.TRIGGERS
    WHERE TRIGGER_SCHEMA = :schema
"""

ROUTINES_SQL = """
    SELECT ROUTINE_NAME, ROUTINE_TYPE, ROUTINE_DEFINITION, ROUTINE_COMMENT,
           DATA_TYPE AS RETURN_TYPE
    FROM information_schema.ROUTINES
    WHERE ROUTINE_SCHEMA = :schema
    ORDER BY ROUTINE_NAME
"""

PARAMETERS_SQL = """
    SELECT PARAMETER_NAME, DATA_TYPE, PARAMETER_MODE, ORDINAL_POSITION
    FROM information_schema.PARAMETERS
    WHERE SPECIFIC_SCHEMA = :schema AND SPECIFIC_NAME = :routine
    ORDER BY ORDINAL_POSITION
"""

ROW_COUNT_SQL = """
    SELECT TABLE_ROWS
    FROM information_schema.TABLES
    WHERE TABLE_SCHEMA = :schema AND TABLE_NAME = :table
"""


def include_schema(schema_name: str) -> bool:
    return schema_name.lower() not in EXCLUDED_SCHEMAS


def supports(product_name: str) -> bool:
    return "mysql" in product_name or "mariadb" in product_name


def list_schema_names(ctx: HookContext) -> List[str]:
    return ctx.connection.standard_catalog().get_catalogs()


def table_comment(ctx: HookContext, schema: str, table: str) -> Optional[str]:
    comment = ctx.query_value(TABLE_COMMENT_SQL, {"schema": schema, "table": table}, "TABLE_COMMENT")
    return comment or None


def column_comments(ctx: HookContext, schema: str, table: str) -> Dict[str, str]:
    rows = ctx.query(COLUMN_COMMENTS_SQL, {"schema": schema, "table": table})
    return {row["COLUMN_NAME"]: row["COLUMN_COMMENT"] for row in rows}


def view_definition(ctx: HookContext, schema: str, view: str) -> Optional[str]:
    return ctx.query_value(VIEW_SQL, {"schema": schema, "view": view}, "VIEW_DEFINITION")


def view_updatable(ctx: HookContext, schema: str, view: str) -> bool:
    return ctx.query_value(VIEW_SQL, {"schema": schema, "view": view}, "IS_UPDATABLE") == "YES"


def _trigger_from_row(row) -> Trigger:
    timing = TriggerTiming.BEFORE if row["ACTION_TIMING"] == "BEFORE" else TriggerTiming.AFTER
    event = TriggerEvent.__members__.get(row["EVENT_MANIPULATION"] or "", TriggerEvent.INSERT)
    return Trigger(
        name=row["TRIGGER_NAME"],
        table_name=row["EVENT_OBJECT_TABLE"],
        timing=timing,
        event=event,
        definition=row.get("ACTION_STATEMENT"),
        enabled=True,
    )


def _triggers(ctx: HookContext, schema: str, table: Optional[str] = None) -> List[Trigger]:
    sql = TRIGGERS_SQL
    params = {"schema": schema}
    if table is not None:
        sql += " AND EVENT_OBJECT_TABLE = :table"
        params["table"] = table
    sql += " ORDER BY EVENT_OBJECT_TABLE, TRIGGER_NAME"
    return [_trigger_from_row(row) for row in ctx.query(sql, params)]


def table_triggers(ctx: HookContext, schema: str, table: str) -> List[Trigger]:
    return _triggers(ctx, schema, table)


def schema_triggers(ctx: HookContext, schema: str) -> List[Trigger]:
    return _triggers(ctx, schema)


def _add_parameters(ctx: HookContext, schema: str, builder: ProcedureBuilder) -> None:
    try:
        rows = ctx.query(PARAMETERS_SQL, {"schema": schema, "routine": builder.name})
    except Exception as e:
        logger.debug("Could not extract parameters for routine %s: %s", builder.name, e)
        return
    for row in rows:
        name = row.get("PARAMETER_NAME")
        if name is None:
            # function return value
            continue
        mode = ParameterMode.__members__.get(row.get("PARAMETER_MODE") or "IN", ParameterMode.IN)
        builder.add_parameter(name, row.get("DATA_TYPE"), mode, int(row.get("ORDINAL_POSITION") or 0))


def procedures(ctx: HookContext, schema: str) -> List[Procedure]:
    result = []
    for row in ctx.query(ROUTINES_SQL, {"schema": schema}):
        is_function = row["ROUTINE_TYPE"] == "FUNCTION"
        builder = ProcedureBuilder(
            name=row["ROUTINE_NAME"],
            type=ProcedureType.FUNCTION if is_function else ProcedureType.PROCEDURE,
            return_type=row.get("RETURN_TYPE") if is_function else None,
            definition=row.get("ROUTINE_DEFINITION"),
            comment=row.get("ROUTINE_COMMENT") or None,
        )
        _add_parameters(ctx, schema, builder)
        result.append(builder.build())
    return result


def row_count(ctx: HookContext, schema: str, table: str) -> Optional[int]:
    value = ctx.query_value(ROW_COUNT_SQL, {"schema": schema, "table": table}, "TABLE_ROWS")
    return None if value is None else int(value)


MYSQL = Dialect(
    vendor_name=VENDOR_NAME,
    supports=supports,
    include_schema=include_schema,
    list_schema_names=list_schema_names,
    catalog_for_schema=lambda schema_name: schema_name,
    schema_for_query=lambda schema_name: None,
    table_comment=table_comment,
    column_comments=column_comments,
    view_definition=view_definition,
    view_updatable=view_updatable,
    table_triggers=table_triggers,
    schema_triggers=schema_triggers,
    procedures=procedures,
    row_count=row_count,
)


def mysql_strategy() -> ExtractionPipeline:
    """Create the MySQL/MariaDB strategy."""
    return ExtractionPipeline(MYSQL)
