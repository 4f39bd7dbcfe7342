"""PostgreSQL dialect.

Comments, view definitions, triggers and routines come from ``pg_catalog``.
When the routine query fails (old servers without ``prokind``), the
pipeline falls back to the standard procedure listing.
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

VENDOR_NAME = "PostgreSQL"

EXCLUDED_SCHEMAS = {"pg_catalog", "information_schema", "pg_toast", "pg_temp_1", "pg_toast_temp_1"}

# pg_trigger.tgtype bits
TGTYPE_BEFORE = 2
TGTYPE_INSERT = 4
TGTYPE_DELETE = 8
TGTYPE_UPDATE = 16
TGTYPE_TRUNCATE = 32
TGTYPE_INSTEAD = 64

TABLE_COMMENT_SQL = """
    SELECT obj_description(c.oid, 'pg_class') AS comment
    FROM pg_class c
    JOIN pg_namespace n ON n.oid = c.relnamespace
    WHERE n.nspname = :schema AND c.relname = :table
"""

COLUMN_COMMENTS_SQL = """
    SELECT a.attname AS column_name,
           col_description(c.oid, a.attnum) AS comment
    FROM pg_class c
    JOIN pg_namespace n ON n.oid = c.relnamespace
    JOIN pg_attribute a ON a.attrelid = c.oid
    WHERE n.nspname = :schema
      AND c.relname = :table
      AND a.attnum > 0
      AND NOT a.attisdropped
      AND col_description(c.oid, a.attnum) IS NOT NULL
"""

VIEW_DEFINITION_SQL = """
    SELECT definition
    FROM pg_views
    WHERE schemaname = :schema AND viewname = :view
"""

VIEW_UPDATABLE_SQL = """
    SELECT is_updatable
    FROM information_schema.views
    WHERE table_schema = :schema AND table_name = :view
"""

TRIGGERS_SQL = """
    SELECT t.tgname AS trigger_name,
           c.relname AS table_name,
           t.tgtype AS tgtype,
           t.tgenabled != 'D' AS enabled,
           pg_get_triggerdef(t.oid) AS definition
    FROM pg_trigger t
    JOIN pg_class c ON c.oid = t.tgrelid
    JOIN pg_namespace n ON n.oid = c.relnamespace
    WHERE n.nspname = :schema
      AND NOT t.tgisinternal
"""

ROUTINES_SQL = """
    SELECT p.proname AS name,
           p.proname || '_' || p.oid AS specific_name,
           CASE p.prokind WHEN 'p' THEN 'PROCEDURE' ELSE 'FUNCTION' END AS type,
           pg_get_function_result(p.oid) AS return_type,
           pg_get_functiondef(p.oid) AS definition,
           d.description AS comment
    FROM pg_proc p
    JOIN pg_namespace n ON n.oid = p.pronamespace
    LEFT JOIN pg_description d ON d.objoid = p.oid AND d.classoid = 'pg_proc'::regclass
    WHERE n.nspname = :schema
      AND p.prokind IN ('f', 'p')
    ORDER BY p.proname
"""

PARAMETERS_SQL = """
    SELECT parameter_name, data_type, parameter_mode, ordinal_position
    FROM information_schema.parameters
    WHERE specific_schema = :schema AND specific_name = :specific_name
    ORDER BY ordinal_position
"""

ROW_COUNT_SQL = """
    SELECT c.reltuples::bigint AS row_count
    FROM pg_class c
    JOIN pg_namespace n ON n.oid = c.relnamespace
    WHERE n.nspname = :schema AND c.relname = :table
"""

SCHEMA_OWNER_SQL = """
    SELECT pg_get_userbyid(nspowner) AS owner
    FROM pg_namespace
    WHERE nspname = :schema
"""


def include_schema(schema_name: str) -> bool:
    return schema_name.lower() not in EXCLUDED_SCHEMAS and not schema_name.startswith("pg_")


def decode_timing(tgtype: int) -> TriggerTiming:
    if tgtype & TGTYPE_BEFORE:
        return TriggerTiming.BEFORE
    if tgtype & TGTYPE_INSTEAD:
        return TriggerTiming.INSTEAD_OF
    return TriggerTiming.AFTER


def decode_event(tgtype: int) -> TriggerEvent:
    """Return the first event a trigger fires on, in INSERT/DELETE/UPDATE/TRUNCATE order."""
    if tgtype & TGTYPE_INSERT:
        return TriggerEvent.INSERT
    if tgtype & TGTYPE_DELETE:
        return TriggerEvent.DELETE
    if tgtype & TGTYPE_UPDATE:
        return TriggerEvent.UPDATE
    if tgtype & TGTYPE_TRUNCATE:
        return TriggerEvent.TRUNCATE
    return TriggerEvent.INSERT


def _triggers(ctx: HookContext, schema: str, table: Optional[str] = None) -> List[Trigger]:
    sql = TRIGGERS_SQL
    params = {"schema": schema}
    if table is not None:
        sql += " AND c.relname = :table"
        params["table"] = table
    sql += " ORDER BY c.relname, t.tgname"

    triggers = []
    for row in ctx.query(sql, params):
        tgtype = int(row["tgtype"] or 0)
        triggers.append(Trigger(
            name=row["trigger_name"],
            table_name=row["table_name"],
            timing=decode_timing(tgtype),
            event=decode_event(tgtype),
            definition=row.get("definition"),
            enabled=bool(row.get("enabled")),
        ))
    return triggers


def table_triggers(ctx: HookContext, schema: str, table: str) -> List[Trigger]:
    return _triggers(ctx, schema, table)


def schema_triggers(ctx: HookContext, schema: str) -> List[Trigger]:
    return _triggers(ctx, schema)


def table_comment(ctx: HookContext, schema: str, table: str) -> Optional[str]:
    return ctx.query_value(TABLE_COMMENT_SQL, {"schema": schema, "table": table}, "comment")


def column_comments(ctx: HookContext, schema: str, table: str) -> Dict[str, str]:
    rows = ctx.query(COLUMN_COMMENTS_SQL, {"schema": schema, "table": table})
    return {row["column_name"]: row["comment"] for row in rows}


def view_definition(ctx: HookContext, schema: str, view: str) -> Optional[str]:
    return ctx.query_value(VIEW_DEFINITION_SQL, {"schema": schema, "view": view}, "definition")


def view_updatable(ctx: HookContext, schema: str, view: str) -> bool:
    value = ctx.query_value(VIEW_UPDATABLE_SQL, {"schema": schema, "view": view}, "is_updatable")
    return value == "YES"


def row_count(ctx: HookContext, schema: str, table: str) -> Optional[int]:
    value = ctx.query_value(ROW_COUNT_SQL, {"schema": schema, "table": table}, "row_count")
    # reltuples is -1 until the table has been analyzed
    if value is None or int(value) < 0:
        return None
    return int(value)


def schema_owner(ctx: HookContext, schema: str) -> Optional[str]:
    return ctx.query_value(SCHEMA_OWNER_SQL, {"schema": schema}, "owner")


def _add_parameters(ctx: HookContext, schema: str, specific_name: str, builder: ProcedureBuilder) -> None:
    try:
        rows = ctx.query(PARAMETERS_SQL, {"schema": schema, "specific_name": specific_name})
    except Exception as e:
        logger.debug("Could not extract parameters for routine %s: %s", builder.name, e)
        return
    for row in rows:
        mode = ParameterMode.__members__.get((row.get("parameter_mode") or "IN").upper(), ParameterMode.IN)
        builder.add_parameter(
            row.get("parameter_name"),
            row.get("data_type"),
            mode,
            int(row.get("ordinal_position") or 0),
        )


def procedures(ctx: HookContext, schema: str) -> List[Procedure]:
    result = []
    for row in ctx.query(ROUTINES_SQL, {"schema": schema}):
        builder = ProcedureBuilder(
            name=row["name"],
            type=ProcedureType.PROCEDURE if row["type"] == "PROCEDURE" else ProcedureType.FUNCTION,
            return_type=row.get("return_type"),
            definition=row.get("definition"),
            comment=row.get("comment"),
        )
        _add_parameters(ctx, schema, row["specific_name"], builder)
        result.append(builder.build())
    return result


POSTGRES = Dialect(
    vendor_name=VENDOR_NAME,
    supports=lambda product_name: "postgresql" in product_name,
    include_schema=include_schema,
    table_comment=table_comment,
    column_comments=column_comments,
    view_definition=view_definition,
    view_updatable=view_updatable,
    view_comment=table_comment,
    table_triggers=table_triggers,
    schema_triggers=schema_triggers,
    procedures=procedures,
    procedures_fall_back=True,
    row_count=row_count,
    schema_owner=schema_owner,
)


def postgres_strategy() -> ExtractionPipeline:
    """Create the PostgreSQL strategy."""
    return ExtractionPipeline(POSTGRES)
