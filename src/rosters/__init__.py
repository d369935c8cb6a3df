"""
Feature areas managed by the roster console.
"""

# Package initialization for rosters module
from .types import RosterCapabilities
from .personnel import PERSONNEL
from .accounting import ACCOUNTING
from .packages import PACKAGES

AREAS = {
    PERSONNEL.key: PERSONNEL,
    ACCOUNTING.key: ACCOUNTING,
    PACKAGES.key: PACKAGES,
}


def get_area(key: str) -> RosterCapabilities:
    try:
        return AREAS[key]
    except KeyError:
        raise ValueError(f"Unknown roster area: {key} (expected one of {sorted(AREAS)})") from None


__all__ = [
    'RosterCapabilities',
    'PERSONNEL',
    'ACCOUNTING',
    'PACKAGES',
    'AREAS',
    'get_area',
]
