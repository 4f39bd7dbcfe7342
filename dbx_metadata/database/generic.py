"""Fallback dialect for databases without a dedicated vendor module.

Relies on the standard catalog alone. It matches every product, so the
registry always resolves it last.
"""

from .pipeline import Dialect, ExtractionPipeline

VENDOR_NAME = "Generic"

# Common system schemas of other vendors, matched case-insensitively
EXCLUDED_SCHEMAS = {"information_schema", "sys", "mysql"}
EXCLUDED_PREFIXES = ("pg_",)


def include_schema(schema_name: str) -> bool:
    lower = schema_name.lower()
    return lower not in EXCLUDED_SCHEMAS and not lower.startswith(EXCLUDED_PREFIXES)


GENERIC = Dialect(
    vendor_name=VENDOR_NAME,
    supports=lambda product_name: True,
    is_fallback=True,
    include_schema=include_schema,
)


def generic_strategy() -> ExtractionPipeline:
    """Create the fallback strategy."""
    return ExtractionPipeline(GENERIC)
