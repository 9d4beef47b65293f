"""
wcag_criteria.py - WCAG 2.2 success-criteria registry.

Usage:
    criterion = criterion_from_code("WCAG2AA.Principle2.Guideline2_4.2_4_1.H64.1")  # "2.4.1"
    level = wcag_level(code)  # "A"
"""

from __future__ import annotations

import re
from types import MappingProxyType

LEVELS = ("A", "AA", "AAA")
UNKNOWN_LEVEL = "Unknown"

A_CRITERIA = (
    "1.1.1", "1.2.1", "1.2.2", "1.2.3", "1.3.1", "1.3.2", "1.3.3", "1.4.1", "1.4.2",
    "2.1.1", "2.1.2", "2.1.4", "2.2.1", "2.2.2", "2.3.1", "2.4.1", "2.4.2", "2.4.3", "2.4.4",
    "2.5.1", "2.5.2", "2.5.3", "2.5.4", "2.5.7", "3.1.1", "3.2.1", "3.2.2", "3.2.6",
    "3.3.1", "3.3.2", "3.3.7", "4.1.1", "4.1.2",
)
AA_CRITERIA = (
    "1.2.4", "1.2.5", "1.3.4", "1.3.5", "1.4.3", "1.4.4", "1.4.5", "1.4.10", "1.4.11",
    "1.4.12", "1.4.13", "2.4.5", "2.4.6", "2.4.7", "2.4.11", "2.5.8", "3.1.2", "3.2.3",
    "3.2.4", "3.3.3", "3.3.4", "3.3.8", "4.1.3",
)
AAA_CRITERIA = (
    "1.2.6", "1.2.7", "1.2.8", "1.2.9", "1.4.6", "1.4.7", "1.4.8", "1.4.9", "2.1.3",
    "2.2.3", "2.2.4", "2.2.5", "2.2.6", "2.3.2", "2.3.3", "2.4.8", "2.4.9", "2.4.10",
    "2.4.12", "2.4.13", "2.5.5", "2.5.6", "3.1.3", "3.1.4", "3.1.5", "3.1.6", "3.2.5",
    "3.3.5", "3.3.6", "3.3.9",
)

_CATALOG = MappingProxyType({
    "A": A_CRITERIA,
    "AA": AA_CRITERIA,
    "AAA": AAA_CRITERIA,
})
_MEMBERSHIP = MappingProxyType({level: frozenset(items) for level, items in _CATALOG.items()})

# pa11y names its standards without the 2.x minor version
SCAN_STANDARDS = ("WCAG2A", "WCAG2AA", "WCAG2AAA")
DEFAULT_SCAN_STANDARD = "WCAG2AAA"

CODE_PATTERN = re.compile(r"Guideline\d+_\d+\.(\d+_\d+_\d+)", re.IGNORECASE)


def _check_disjoint() -> None:
    seen: dict[str, str] = {}
    for level, items in _CATALOG.items():
        if len(set(items)) != len(items):
            raise RuntimeError(f"Duplicate criterion inside level {level}")
        for criterion in items:
            if criterion in seen:
                raise RuntimeError(
                    f"Criterion {criterion} listed under both {seen[criterion]} and {level}"
                )
            seen[criterion] = level


_check_disjoint()


def criterion_from_code(code: str | None = "") -> str | None:
    """Extract the dotted success-criterion id embedded in a rule code."""
    match = CODE_PATTERN.search(str(code or ""))
    if not match:
        return None
    return match.group(1).replace("_", ".")


def level_of_criterion(criterion: str | None) -> str:
    if not criterion:
        return UNKNOWN_LEVEL
    for level in LEVELS:
        if criterion in _MEMBERSHIP[level]:
            return level
    return UNKNOWN_LEVEL


def wcag_level(code: str | None = "") -> str:
    return level_of_criterion(criterion_from_code(code))


def criteria_by_level() -> dict[str, list[str]]:
    return {level: list(items) for level, items in _CATALOG.items()}


def normalize_level(level: str | None, default: str = "AA") -> str:
    clean = str(level or "").strip().upper()
    return clean if clean in LEVELS else default


def required_levels(target_level: str | None) -> tuple[str, ...]:
    """Levels whose criteria must all pass for a verdict at ``target_level``."""
    target = normalize_level(target_level)
    return LEVELS[: LEVELS.index(target) + 1]


def target_standard_from_level(level: str | None = "") -> str:
    clean = str(level or "").strip().upper()
    if clean == "AAA":
        return "WCAG22AAA"
    if clean == "A":
        return "WCAG22A"
    return "WCAG22AA"
