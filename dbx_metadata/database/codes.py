"""Code tables used by the standard introspection interface.

The numbering follows the portable catalog conventions that drivers report
for imported-key rules, index kinds and routine signatures.
"""

from enum import IntEnum


class ImportedKeyRule(IntEnum):
    """UPDATE_RULE / DELETE_RULE codes of an imported (foreign) key."""
    CASCADE = 0
    RESTRICT = 1
    SET_NULL = 2
    NO_ACTION = 3
    SET_DEFAULT = 4


class IndexInfoType(IntEnum):
    """TYPE codes of an index-info row."""
    STATISTIC = 0
    CLUSTERED = 1
    HASHED = 2
    OTHER = 3


class ProcedureResult(IntEnum):
    """PROCEDURE_TYPE codes of a procedure row."""
    UNKNOWN = 0
    NO_RESULT = 1
    RETURNS_RESULT = 2


class ProcedureColumnType(IntEnum):
    """COLUMN_TYPE codes of a procedure parameter row."""
    UNKNOWN = 0
    IN = 1
    INOUT = 2
    RESULT = 3
    OUT = 4
    RETURN = 5


# Table types passed to get_tables()
TABLE = "TABLE"
VIEW = "VIEW"
