"""
Reporting buckets for free-form case status strings.

This is the only place canonical status grouping happens. Everything that
reports on cases by status goes through `classify`.
"""

import re
from collections.abc import Iterable

from case_engine.models.enums import StatusGroup

STATUS_GROUP_ORDER: list[StatusGroup] = [
    StatusGroup.DRAFT,
    StatusGroup.IN_REVIEW,
    StatusGroup.SUBMITTED_TO_COMMITTEE,
    StatusGroup.APPROVED,
    StatusGroup.RETURNED,
    StatusGroup.REJECTED,
    StatusGroup.CLOSED,
    StatusGroup.OTHER,
]

_STATUS_ALIASES: dict[StatusGroup, set[str]] = {
    StatusGroup.DRAFT: {"draft"},
    StatusGroup.SUBMITTED_TO_COMMITTEE: {
        "submitted",
        "under_verification",
        "underverification",
    },
    StatusGroup.IN_REVIEW: {
        "under_review",
        "underreview",
        "in_review",
        "inreview",
        "in_progress",
        "processing",
        "pending",
        "pending_review",
        "under_committee_review",
    },
    StatusGroup.APPROVED: {"approved"},
    StatusGroup.RETURNED: {
        "returned",
        "return",
        "needs_info",
        "need_more_info",
        "need_info",
    },
    StatusGroup.REJECTED: {"rejected", "reject", "denied"},
    StatusGroup.CLOSED: {"closed", "close", "completed", "disbursed", "settled"},
}

_ALIAS_TO_GROUP: dict[str, StatusGroup] = {
    alias: group for group, aliases in _STATUS_ALIASES.items() for alias in aliases
}

_SEPARATORS = re.compile(r"[-_\s]+")


def normalize_status(raw_status) -> str:
    if not isinstance(raw_status, str):
        return ""
    return _SEPARATORS.sub("_", raw_status.strip().lower())


def classify(raw_status) -> StatusGroup:
    """Map any status string (or None) to its reporting group. Never raises."""
    return _ALIAS_TO_GROUP.get(normalize_status(raw_status), StatusGroup.OTHER)


def summarize_status_groups(statuses: Iterable) -> dict[StatusGroup, int]:
    """Count statuses per group, every group present, in display order."""
    counts = {group: 0 for group in STATUS_GROUP_ORDER}
    for status in statuses:
        counts[classify(status)] += 1
    return counts
