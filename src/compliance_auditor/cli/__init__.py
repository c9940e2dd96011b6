"""Command-line interface package for the compliance auditor."""

from .app import build_parser, create_collector, create_service, main, render_rules, run

__all__ = [
    "build_parser",
    "create_collector",
    "create_service",
    "main",
    "render_rules",
    "run",
]
