"""Presentation layer. The Qt panel is imported lazily so the CLI works without a display."""

from .render import (
    render_record, render_records_tsv, render_records_json, render_outcome,
    render_html, is_failure,
)

__all__ = [
    'render_record', 'render_records_tsv', 'render_records_json', 'render_outcome',
    'render_html', 'is_failure',
]
