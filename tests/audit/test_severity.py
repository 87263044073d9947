# tests/audit/test_severity.py
"""
Tests for per-category severity classification.
"""

import pytest

from auditcore.audit.severity import SEVERITY_TABLES, classify
from auditcore.models import Category, Severity


class TestClassify:
    """Tests for classify()."""

    @pytest.mark.parametrize(
        "category,action,expected",
        [
            (Category.AUTH, "LOGIN_FAILED_MULTIPLE", Severity.CRITICAL),
            (Category.AUTH, "LOGIN_FAILED", Severity.HIGH),
            (Category.AUTH, "LOGOUT", Severity.MEDIUM),
            (Category.SECURITY, "SQL_INJECTION", Severity.CRITICAL),
            (Category.SECURITY, "RATE_LIMIT_EXCEEDED", Severity.HIGH),
            (Category.SECURITY, "WEAK_PASSWORD", Severity.MEDIUM),
            (Category.DATA, "BULK_DATA_EXPORT", Severity.CRITICAL),
            (Category.DATA, "DATA_EXPORT", Severity.HIGH),
            (Category.DATA, "DATA_VIEWED", Severity.MEDIUM),
            (Category.SYSTEM, "SERVICE_DOWN", Severity.CRITICAL),
            (Category.SYSTEM, "DISK_SPACE_LOW", Severity.HIGH),
            (Category.SYSTEM, "CONFIGURATION_CHANGE", Severity.MEDIUM),
        ],
    )
    def test_known_actions(self, category, action, expected):
        assert classify(category, action) == expected

    def test_unknown_action_is_low(self):
        assert classify(Category.AUTH, "SOMETHING_ELSE") == Severity.LOW

    def test_user_actions_are_always_low(self):
        assert classify(Category.USER_ACTION, "DATA_DELETED") == Severity.LOW

    def test_vocabulary_is_per_category(self):
        # critical for data, meaningless for auth
        assert classify(Category.DATA, "DATA_DELETED") == Severity.CRITICAL
        assert classify(Category.AUTH, "DATA_DELETED") == Severity.LOW

    def test_accepts_string_category(self):
        assert classify("security", "XSS_ATTACK") == Severity.CRITICAL

    def test_unknown_category_is_low(self):
        assert classify("billing", "XSS_ATTACK") == Severity.LOW

    def test_tables_do_not_overlap_within_category(self):
        for table in SEVERITY_TABLES.values():
            seen = set()
            for actions in table.values():
                assert not (seen & actions)
                seen |= actions
