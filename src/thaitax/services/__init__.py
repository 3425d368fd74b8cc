"""Calculation, history and export services built on the tax engine."""

from .calculation_service import calculate_tax
from .export_service import (
    format_currency,
    format_number,
    format_percentage,
    format_thai_date,
    format_thai_datetime,
    parse_currency,
    render_csv,
    render_pdf,
    render_share_text,
    render_text_report,
)
from .history_service import (
    CalculationHistory,
    InMemoryStorage,
    SQLiteStorage,
    build_history_from_env,
    restore_request,
)

__all__ = [
    "CalculationHistory",
    "InMemoryStorage",
    "SQLiteStorage",
    "build_history_from_env",
    "calculate_tax",
    "format_currency",
    "format_number",
    "format_percentage",
    "format_thai_date",
    "format_thai_datetime",
    "parse_currency",
    "render_csv",
    "render_pdf",
    "render_share_text",
    "render_text_report",
    "restore_request",
]
