#!/usr/bin/env python3
"""
Shared utilities for Linear issue processing
Contains safe extraction helpers for untyped GraphQL dicts and small display helpers
Used by issue_models.py, report_generator.py, and other analysis tools
"""

from typing import Any, Dict, Optional


def opt_str(value: Any) -> Optional[str]:
    """Coerce to optional string"""
    return str(value) if value is not None else None


def opt_int(value: Any) -> Optional[int]:
    """Coerce to optional int, None when not convertible"""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def opt_float(value: Any) -> Optional[float]:
    """Coerce to optional float, None when not convertible"""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def nested_get(data: Any, *keys: str) -> Any:
    """
    Walk nested dicts safely, e.g. nested_get(issue, 'state', 'type').

    Args:
        data: Untyped value from a GraphQL response
        *keys: Keys to follow

    Returns:
        The value found, or None if any level is missing or not a dict
    """
    current = data
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def nested_dict(data: Dict[str, Any], key: str) -> Optional[Dict[str, Any]]:
    """Return data[key] when it is a dict, else None"""
    value = data.get(key) if isinstance(data, dict) else None
    return value if isinstance(value, dict) else None


def truncate_title(title: Optional[str], max_length: int = 50) -> str:
    """Truncate a title for table and CSV readability"""
    if not title:
        return 'N/A'
    if len(title) <= max_length:
        return title
    return f"{title[:max_length - 3]}..."


def format_metric_value(value: Any, missing: Optional[str] = 'N/A') -> Optional[str]:
    """
    Format a metric value for display.

    Whole floats lose their decimal part, other floats are rounded to 2 places.
    """
    if value is None:
        return missing
    if isinstance(value, float):
        if value == int(value):
            return str(int(value))
        return str(round(value, 2))
    return str(value)
