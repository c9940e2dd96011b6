"""Report aggregation, rendering and CI publishing."""

from .report import (
    EXIT_FAILED,
    EXIT_FATAL,
    EXIT_OK,
    OUTPUT_FORMATS,
    AuditReport,
    Reporter,
    ReportError,
    render,
    render_text,
)

__all__ = [
    "AuditReport",
    "EXIT_FAILED",
    "EXIT_FATAL",
    "EXIT_OK",
    "OUTPUT_FORMATS",
    "ReportError",
    "Reporter",
    "render",
    "render_text",
]
