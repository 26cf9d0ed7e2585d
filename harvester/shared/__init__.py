"""
Shared utilities used across the harvester layers.

- helpers.py: date parsing, tag stripping, text truncation for log lines
"""

from harvester.shared.helpers import parse_datetime, strip_html_tags, truncate_text

__all__ = ["parse_datetime", "strip_html_tags", "truncate_text"]
