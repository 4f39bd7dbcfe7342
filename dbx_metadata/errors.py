"""Error types for metadata extraction."""

import re
from typing import Optional, Dict, Any

# SQLSTATE classes that indicate an authorization failure
PERMISSION_SQLSTATE_CLASSES = ("28", "42")

# Native authorization error numbers for vendors whose drivers report no SQLSTATE
PERMISSION_VENDOR_CODES = frozenset({
    # MySQL / MariaDB
    "1044", "1045", "1142", "1143", "1227", "1370",
    # SQL Server
    "229", "230", "262", "297", "300", "916",
})

_SQLSTATE_RE = re.compile(r"^[0-9A-Z]{5}$")


class CatalogError(Exception):
    """Error raised by a catalog connection while reading metadata.

    Adapters raise this when they can attach the vendor's SQLSTATE and
    native error code directly instead of relying on a driver exception.
    """

    def __init__(
        self,
        message: str,
        sql_state: Optional[str] = None,
        vendor_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.sql_state = sql_state
        self.vendor_code = vendor_code


def _driver_error(exc: BaseException) -> BaseException:
    """Unwrap a SQLAlchemy DBAPIError to the driver's own exception."""
    orig = getattr(exc, "orig", None)
    return orig if isinstance(orig, BaseException) else exc


def sql_state_of(exc: Optional[BaseException]) -> Optional[str]:
    """Return the SQLSTATE carried by an exception, if any.

    Understands CatalogError, SQLAlchemy's DBAPIError wrapper and the
    attribute names used by psycopg (``pgcode``/``sqlstate``) and
    mysql-connector (``sqlstate``). pyodbc puts the state in ``args[0]``.
    """
    if exc is None:
        return None
    if isinstance(exc, MetadataExtractionError):
        return exc.sql_state
    if isinstance(exc, CatalogError):
        return exc.sql_state

    driver_exc = _driver_error(exc)
    for attr in ("pgcode", "sqlstate", "sql_state"):
        value = getattr(driver_exc, attr, None)
        if isinstance(value, str) and value:
            return value

    args = getattr(driver_exc, "args", ())
    if args and isinstance(args[0], str) and _SQLSTATE_RE.match(args[0]):
        return args[0]
    return None


def vendor_code_of(exc: Optional[BaseException]) -> Optional[str]:
    """Return the vendor's native error number, if any."""
    if exc is None:
        return None
    if isinstance(exc, (MetadataExtractionError, CatalogError)):
        return exc.vendor_code

    driver_exc = _driver_error(exc)
    errno = getattr(driver_exc, "errno", None)
    if errno is not None:
        return str(errno)

    # pymysql / pymssql: (code, message)
    args = getattr(driver_exc, "args", ())
    if args and isinstance(args[0], int):
        return str(args[0])
    return None


class MetadataExtractionError(Exception):
    """Error during metadata extraction.

    Carries the failing operation, the target object and whatever vendor
    diagnostics could be read from the underlying cause. Whether the failure
    is an authorization problem is derived from the SQLSTATE or the native
    error number, not from the exception class.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        object_name: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(self._format_message(message, operation, object_name))
        self.message = message
        self.operation = operation
        self.object_name = object_name
        self.cause = cause
        self.sql_state = sql_state_of(cause)
        self.vendor_code = vendor_code_of(cause)

    @staticmethod
    def _format_message(message: str, operation: Optional[str], object_name: Optional[str]) -> str:
        if operation is None:
            return message
        details = f"operation={operation}"
        if object_name is not None:
            details += f", object={object_name}"
        return f"{message} [{details}]"

    @property
    def is_permission_error(self) -> bool:
        """True when the vendor reported an authorization denial."""
        if self.sql_state and (
            self.sql_state == "28000" or self.sql_state.startswith(PERMISSION_SQLSTATE_CLASSES)
        ):
            return True
        return self.vendor_code in PERMISSION_VENDOR_CODES

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for structured output."""
        return {
            "message": self.message,
            "operation": self.operation,
            "object": self.object_name,
            "sql_state": self.sql_state,
            "vendor_code": self.vendor_code,
            "permission_error": self.is_permission_error,
        }
