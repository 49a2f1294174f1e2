"""Stability metrics for build and release summaries.

This module provides utilities for:
- Computing user and session stability ratios from raw summary counters.
- Comparing the project's chosen stability metric with its target and
  critical thresholds.
- Returning an annotated copy of a build or release record.

A record with no observed users (or sessions) has a stability of ``0``;
missing data never reads as perfectly stable.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, TypedDict

from .models import StabilityTargets


class StabilityData(TypedDict):
    user_stability: float
    session_stability: float
    stability_target_type: str
    target_stability: float
    critical_stability: float
    meets_target_stability: bool
    meets_critical_stability: bool


def _counter(record: Mapping[str, Any], name: str) -> int:
    return int(record.get(name) or 0)


def stability_ratio(total: int, affected: int) -> float:
    """Return the unaffected fraction of ``total``, or ``0.0`` when ``total`` is zero."""
    if total == 0:
        return 0.0
    return (total - affected) / total


def compute_stability(record: Mapping[str, Any], targets: StabilityTargets) -> StabilityData:
    """Compute the derived stability data for one build or release summary.

    Args:
        record: Raw summary with ``accumulative_daily_users_seen``,
            ``accumulative_daily_users_with_unhandled``,
            ``total_sessions_count`` and ``unhandled_sessions_count``.
        targets: The project's stability targets.

    Returns:
        Stability ratios, the thresholds used and whether each is met.
    """
    user_stability = stability_ratio(
        _counter(record, "accumulative_daily_users_seen"),
        _counter(record, "accumulative_daily_users_with_unhandled"),
    )
    session_stability = stability_ratio(
        _counter(record, "total_sessions_count"),
        _counter(record, "unhandled_sessions_count"),
    )

    metric = user_stability if targets.stability_target_type == "user" else session_stability

    return {
        "user_stability": user_stability,
        "session_stability": session_stability,
        "stability_target_type": targets.stability_target_type,
        "target_stability": targets.target_stability,
        "critical_stability": targets.critical_stability,
        "meets_target_stability": metric >= targets.target_stability,
        "meets_critical_stability": metric >= targets.critical_stability,
    }


def annotate(record: Mapping[str, Any], targets: StabilityTargets) -> Dict[str, Any]:
    """Return a copy of ``record`` with its stability data merged in."""
    annotated = dict(record)
    annotated.update(compute_stability(record, targets))
    return annotated
