"""Export of extracted metadata trees.

Filtering rebuilds the immutable tree without the parts a caller opted out
of; serialization turns it into a nested JSON document.
"""

import json
import logging
from dataclasses import fields, is_dataclass, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field

from .database.models import Column, Database, Schema, Table, View

logger = logging.getLogger(__name__)


class ExportFormat(str, Enum):
    """Supported export formats."""
    JSON = "json"


class ExportOptions(BaseModel):
    """What to export and where."""
    format: ExportFormat = ExportFormat.JSON
    output_path: Optional[Path] = Field(default=None, description="File to write; None keeps the document in memory")
    pretty_print: bool = True
    include_procedures: bool = True
    include_triggers: bool = True
    include_index_details: bool = True
    include_comments: bool = True
    include_view_definitions: bool = True

    @property
    def includes_everything(self) -> bool:
        return (
            self.include_procedures
            and self.include_triggers
            and self.include_index_details
            and self.include_comments
            and self.include_view_definitions
        )


class ExportResult(BaseModel):
    """Outcome of an export; failures are reported here, not raised."""
    success: bool
    output_path: Optional[Path] = None
    bytes_written: int = 0
    error_message: Optional[str] = None
    content: Optional[str] = Field(default=None, description="Document text when no output path was given")

    @classmethod
    def failure(cls, error_message: str) -> "ExportResult":
        return cls(success=False, error_message=error_message)


# ----------------------------------------------------------------------
# Filtering
# ----------------------------------------------------------------------

def filter_metadata(database: Database, options: ExportOptions) -> Database:
    """Drop the parts of ``database`` disabled in ``options``.

    Returns the same object when nothing is disabled.
    """
    if options.includes_everything:
        return database
    return replace(database, schemas=tuple(_filter_schema(s, options) for s in database.schemas))


def _filter_schema(schema: Schema, options: ExportOptions) -> Schema:
    return replace(
        schema,
        tables=tuple(_filter_table(t, options) for t in schema.tables),
        views=tuple(_filter_view(v, options) for v in schema.views),
        procedures=schema.procedures if options.include_procedures else (),
    )


def _filter_table(table: Table, options: ExportOptions) -> Table:
    return replace(
        table,
        columns=tuple(_filter_column(c, options) for c in table.columns),
        indexes=table.indexes if options.include_index_details else (),
        triggers=table.triggers if options.include_triggers else (),
        comment=table.comment if options.include_comments else None,
    )


def _filter_column(column: Column, options: ExportOptions) -> Column:
    if options.include_comments:
        return column
    return column.with_comment(None)


def _filter_view(view: View, options: ExportOptions) -> View:
    return replace(
        view,
        columns=tuple(_filter_column(c, options) for c in view.columns),
        definition=view.definition if options.include_view_definitions else None,
        comment=view.comment if options.include_comments else None,
    )


# ----------------------------------------------------------------------
# Serialization
# ----------------------------------------------------------------------

def _to_plain(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        document = {}
        for f in fields(value):
            item = _to_plain(getattr(value, f.name))
            if item is not None:
                document[f.name] = item
        return document
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_to_plain(v) for v in value]
    return value


def to_dict(entity: Any) -> Dict[str, Any]:
    """Convert a metadata entity (usually a Database) to nested dicts.

    None fields are left out, enums become their names and timestamps
    ISO-8601 strings.
    """
    return _to_plain(entity)


def to_json(entity: Any, pretty: bool = True) -> str:
    """Serialize a metadata entity to a JSON document with sorted keys."""
    return json.dumps(to_dict(entity), indent=2 if pretty else None, sort_keys=True, ensure_ascii=False)


def export_metadata(database: Database, options: Optional[ExportOptions] = None) -> ExportResult:
    """Filter and serialize ``database`` according to ``options``.

    With an ``output_path`` the document is written to that file (parent
    directories are created); otherwise it is returned in ``content``.
    """
    if options is None:
        options = ExportOptions()

    document = to_json(filter_metadata(database, options), pretty=options.pretty_print)

    if options.output_path is None:
        logger.debug("Generated JSON metadata (%d chars)", len(document))
        return ExportResult(success=True, bytes_written=len(document), content=document)

    path = Path(options.output_path)
    data = document.encode("utf-8")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as e:
        logger.error("Failed to export metadata to %s: %s", path, e)
        return ExportResult.failure(f"JSON export failed: {e}")

    logger.info("Exported metadata to %s", path)
    return ExportResult(success=True, output_path=path, bytes_written=len(data))
