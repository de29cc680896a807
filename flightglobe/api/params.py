"""
Query parameter parsing shared by the API blueprints.

Parsers raise ValueError with a client-facing message; blueprints turn
that into a 400 response.
"""

from typing import Optional

from flightglobe.models import Region


def parse_region(value: Optional[str], allow_world: bool = False) -> Optional[Region]:
    """Region from a query string value; None for absent (or 'world' when allowed)."""
    if not value:
        return None
    if allow_world and value == 'world':
        return None
    try:
        return Region(value)
    except ValueError:
        valid = ', '.join(r.value for r in Region)
        raise ValueError(f'Unknown region {value!r} (expected one of: {valid})')


def parse_hours(value: Optional[str], default: float, maximum: float) -> float:
    """Positive hour window, capped at maximum."""
    if value is None or value == '':
        return default
    try:
        hours = float(value)
    except ValueError:
        raise ValueError('hours must be a number')
    if hours <= 0:
        raise ValueError('hours must be positive')
    return min(hours, maximum)


def parse_flag(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.lower() == 'true'
