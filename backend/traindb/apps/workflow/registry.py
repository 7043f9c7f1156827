from __future__ import annotations

from .guards import (
    guard_day_plan_publishable,
    guard_eod_submitted,
    guard_observation_rated,
    guard_review_recorded,
    guard_trainee_plan_tasks_filled,
)

WORKFLOWS = {
    "assignment": {
        "transitions": {
            "ACTIVE": {
                "COMPLETED": [],
                "CANCELLED": [],
                "INACTIVE": [],
            },
            "INACTIVE": {
                "CANCELLED": [],
            },
            "COMPLETED": {},
            "CANCELLED": {},
        }
    },
    "trainee_day_plan": {
        "transitions": {
            "DRAFT": {
                "IN_PROGRESS": [guard_trainee_plan_tasks_filled],
                "PENDING": [guard_eod_submitted],
            },
            "IN_PROGRESS": {
                "COMPLETED": [guard_review_recorded],
                "REJECTED": [guard_review_recorded],
                "PENDING": [guard_eod_submitted],
            },
            "PENDING": {
                "COMPLETED": [guard_review_recorded],
                "REJECTED": [guard_review_recorded],
                "PENDING": [guard_eod_submitted],
            },
            "REJECTED": {
                "PENDING": [guard_eod_submitted],
            },
            "COMPLETED": {},
        }
    },
    "day_plan": {
        "transitions": {
            "DRAFT": {"PUBLISHED": [guard_day_plan_publishable]},
            "PUBLISHED": {"COMPLETED": []},
            "COMPLETED": {},
        }
    },
    "observation": {
        "transitions": {
            "DRAFT": {"SUBMITTED": [guard_observation_rated]},
            "SUBMITTED": {"REVIEWED": [guard_review_recorded]},
            "REVIEWED": {},
        }
    },
}
