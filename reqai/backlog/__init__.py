"""
Backlog generation and views.
"""

from reqai.backlog.generator import BacklogItemGenerator, build_items, parse_backlog_response
from reqai.backlog.hierarchy import build_tree, counts_by_type, export_backlog, orphans

__all__ = [
    "BacklogItemGenerator",
    "build_items",
    "build_tree",
    "counts_by_type",
    "export_backlog",
    "orphans",
    "parse_backlog_response",
]
