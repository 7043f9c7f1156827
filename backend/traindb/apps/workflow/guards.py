from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy.orm import Session

GuardResult = List[Dict[str, str]]


def _get_value(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def guard_trainee_plan_tasks_filled(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    tasks = _get_value(after_obj, "tasks") or []
    missing = []
    for index, task in enumerate(tasks):
        if _blank(_get_value(task, "title")):
            missing.append({"field": f"tasks[{index}].title", "reason": "task title required"})
        if _blank(_get_value(task, "description")):
            missing.append({"field": f"tasks[{index}].description", "reason": "task description required"})
        if _blank(_get_value(task, "time_allocation")):
            missing.append({"field": f"tasks[{index}].time_allocation", "reason": "time allocation required"})
    return missing


def guard_review_recorded(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    missing = []
    if not _get_value(after_obj, "reviewed_by_id"):
        missing.append({"field": "reviewed_by_id", "reason": "reviewer required"})
    if not _get_value(after_obj, "reviewed_at"):
        missing.append({"field": "reviewed_at", "reason": "review timestamp required"})
    return missing


def guard_eod_submitted(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    if _get_value(after_obj, "eod_status") != "SUBMITTED":
        return [{"field": "eod_status", "reason": "end-of-day update required"}]
    return []


def guard_day_plan_publishable(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    if not _get_value(after_obj, "tasks"):
        return [{"field": "tasks", "reason": "at least one task required"}]
    return []


_OBSERVATION_CATEGORIES = {
    "culture": ("communication", "teamwork", "discipline", "attitude"),
    "grooming": ("dress_code", "neatness", "punctuality"),
}


def guard_observation_rated(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    missing = []
    for section, keys in _OBSERVATION_CATEGORIES.items():
        ratings = _get_value(after_obj, section) or {}
        for key in keys:
            if _blank(_get_value(ratings, key)):
                missing.append({"field": f"{section}.{key}", "reason": "rating required"})
    if _blank(_get_value(after_obj, "overall_rating")):
        missing.append({"field": "overall_rating", "reason": "rating required"})
    return missing
