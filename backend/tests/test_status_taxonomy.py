"""
Tests for status grouping of free-form case status strings.
"""

import pytest

from case_engine.models.enums import StatusGroup
from case_engine.services.status_taxonomy import (
    STATUS_GROUP_ORDER,
    classify,
    normalize_status,
    summarize_status_groups,
)


class TestClassify:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Draft", StatusGroup.DRAFT),
            ("Submitted", StatusGroup.SUBMITTED_TO_COMMITTEE),
            ("Under_Verification", StatusGroup.SUBMITTED_TO_COMMITTEE),
            ("under verification", StatusGroup.SUBMITTED_TO_COMMITTEE),
            ("Under_Review", StatusGroup.IN_REVIEW),
            ("under-review", StatusGroup.IN_REVIEW),
            ("Pending Review", StatusGroup.IN_REVIEW),
            ("processing", StatusGroup.IN_REVIEW),
            ("Approved", StatusGroup.APPROVED),
            ("Need_More_Info", StatusGroup.RETURNED),
            ("needs info", StatusGroup.RETURNED),
            ("Denied", StatusGroup.REJECTED),
            ("Disbursed", StatusGroup.CLOSED),
            ("settled", StatusGroup.CLOSED),
        ],
    )
    def test_known_aliases(self, raw, expected):
        assert classify(raw) == expected

    def test_whitespace_and_case_are_ignored(self):
        assert classify("  Under Review  ") == StatusGroup.IN_REVIEW
        assert classify("APPROVED") == StatusGroup.APPROVED

    @pytest.mark.parametrize("raw", [None, "", "   ", "Archived", 42, "approved!"])
    def test_unknown_values_are_other(self, raw):
        assert classify(raw) == StatusGroup.OTHER

    def test_separator_runs_collapse(self):
        assert normalize_status("under -  review") == "under_review"
        assert classify("under -  review") == StatusGroup.IN_REVIEW

    def test_non_string_normalizes_to_empty(self):
        assert normalize_status(None) == ""
        assert normalize_status(3.5) == ""


class TestSummarize:
    def test_every_group_present_in_display_order(self):
        counts = summarize_status_groups([])
        assert list(counts) == STATUS_GROUP_ORDER
        assert all(v == 0 for v in counts.values())

    def test_counts_by_group(self):
        counts = summarize_status_groups(
            ["Draft", "draft", "Under_Review", "Closed", "Completed", None, "weird"]
        )
        assert counts[StatusGroup.DRAFT] == 2
        assert counts[StatusGroup.IN_REVIEW] == 1
        assert counts[StatusGroup.CLOSED] == 2
        assert counts[StatusGroup.OTHER] == 2
        assert sum(counts.values()) == 7
