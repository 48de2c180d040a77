"""Low-level helpers that interact with external libraries (Lance, converters, stemmers)."""

from .analysis import (
    Analyzer,
    EnglishAnalyzer,
    PolishAnalyzer,
    Token,
    analyzer_for_language,
    polish_stemmer,
)
from .conversion import (
    ConversionPlan,
    build_conversion_plan,
    convert_with_docling,
    convert_with_markitdown,
    extract_text_from_docling,
    extract_text_from_markitdown,
)
from .lance import (
    add_rows,
    column_values,
    delete_values,
    delete_where,
    ensure_scalar_index,
    in_clauses,
    insert_missing,
    open_or_create_table,
    optimize_table,
    quote,
    replace_partition,
    scan,
    upsert_rows,
)

__all__ = [
    "Analyzer",
    "ConversionPlan",
    "EnglishAnalyzer",
    "PolishAnalyzer",
    "Token",
    "add_rows",
    "analyzer_for_language",
    "build_conversion_plan",
    "column_values",
    "convert_with_docling",
    "convert_with_markitdown",
    "delete_values",
    "delete_where",
    "ensure_scalar_index",
    "extract_text_from_docling",
    "extract_text_from_markitdown",
    "in_clauses",
    "insert_missing",
    "open_or_create_table",
    "optimize_table",
    "polish_stemmer",
    "quote",
    "replace_partition",
    "scan",
    "upsert_rows",
]
