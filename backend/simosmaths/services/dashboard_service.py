from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Mapping

from ..repositories import children as children_repo
from ..repositories import exercises as exercises_repo
from ..repositories import profiles as profiles_repo
from ..repositories import videos as videos_repo
from ..utils.timestamps import to_datetime, utcnow


class DashboardError(Exception):
    status_code = 404

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        super().__init__(detail)
        if status_code is not None:
            self.status_code = status_code
        self.detail = detail


def round_half_up(numerator: int, denominator: int) -> int:
    """Nearest integer to numerator/denominator, halves rounded up (non-negative inputs)."""
    if denominator <= 0:
        return 0
    return (2 * numerator + denominator) // (2 * denominator)


def success_rate(correct: int, total: int) -> int:
    if total <= 0:
        return 0
    return round_half_up(correct * 100, total)


def child_stats(summary: Mapping[str, int], watched_seconds: int) -> dict[str, int]:
    total = int(summary.get("total") or 0)
    correct = int(summary.get("correct") or 0)
    return {
        "total_exercises": total,
        "correct_exercises": correct,
        "success_rate": success_rate(correct, total),
        "total_video_time": round_half_up(int(watched_seconds or 0), 60),
    }


def aggregate_totals(stats: list[Mapping[str, int]]) -> dict[str, int]:
    total = sum(int(item["total_exercises"]) for item in stats)
    correct = sum(int(item["correct_exercises"]) for item in stats)
    return {
        "total_exercises": total,
        "correct_exercises": correct,
        "success_rate": success_rate(correct, total),
        "total_video_time": sum(int(item["total_video_time"]) for item in stats),
    }


def subscription_summary(
    profile: Mapping[str, Any], *, now: datetime | None = None
) -> dict[str, Any]:
    trial_ends_at = to_datetime(profile.get("trial_ends_at"))
    return {
        "tier": profile.get("subscription_tier"),
        "status": profile.get("subscription_status"),
        "trial_ends_at": trial_ends_at,
        "is_trial_active": bool(trial_ends_at and trial_ends_at > (now or utcnow())),
    }


async def _load_child_stats(child: Mapping[str, Any]) -> dict[str, Any]:
    child_id = str(child["id"])
    summary, watched_seconds = await asyncio.gather(
        exercises_repo.get_child_exercise_summary(child_id),
        videos_repo.get_child_watched_seconds(child_id),
    )
    return {**child, "stats": child_stats(summary, watched_seconds)}


async def get_dashboard_stats(user: Mapping[str, Any]) -> dict[str, Any]:
    profile_id = str(user["id"])
    profile = await profiles_repo.get_profile(profile_id)
    if not profile:
        raise DashboardError("Profile not found")

    children = await children_repo.list_children(profile_id)
    children_with_stats = list(
        await asyncio.gather(*(_load_child_stats(child) for child in children))
    )
    return {
        "profile": profile,
        "children": children_with_stats,
        "totals": aggregate_totals([child["stats"] for child in children_with_stats]),
        "subscription": subscription_summary(profile),
    }


__all__ = [
    "DashboardError",
    "aggregate_totals",
    "child_stats",
    "get_dashboard_stats",
    "round_half_up",
    "subscription_summary",
    "success_rate",
]
