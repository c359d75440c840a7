"""Unit tests for the sensitivity policy and redaction."""

from __future__ import annotations

from auditmcp.audit import AuditAction
from auditmcp.audit.policy import REDACTED
from auditmcp.audit.policy import is_sensitive
from auditmcp.audit.policy import sanitize_details


class TestIsSensitive:
    def test_allow_list(self):
        sensitive = {action for action in AuditAction if is_sensitive(action)}
        assert sensitive == {
            AuditAction.AUTH_LOGIN,
            AuditAction.AUTH_REGISTER,
            AuditAction.AUTH_PASSWORD_CHANGE,
            AuditAction.AUTH_PASSWORD_RESET,
            AuditAction.DATA_EXPORT,
            AuditAction.ADMIN_USER_CREATE,
            AuditAction.ADMIN_SETTINGS_CHANGE,
        }

    def test_accepts_raw_value(self):
        assert is_sensitive("auth.login") is True
        assert is_sensitive("auth.logout") is False


class TestSanitizeDetails:
    def test_none_passes_through(self):
        assert sanitize_details(None) is None

    def test_redacts_denylisted_keys(self):
        details = {
            "password": "hunter2",
            "token": "abc",
            "secret": "s",
            "key": "k",
            "credential": "c",
            "username": "alice",
        }
        sanitized = sanitize_details(details)
        for field_name in ("password", "token", "secret", "key", "credential"):
            assert sanitized[field_name] == REDACTED
        assert sanitized["username"] == "alice"

    def test_original_is_not_mutated(self):
        details = {"password": "hunter2"}
        sanitize_details(details)
        assert details == {"password": "hunter2"}

    def test_case_insensitive_match(self):
        sanitized = sanitize_details({"Password": "hunter2", "TOKEN": "abc"})
        assert "hunter2" not in sanitized.values()
        assert "abc" not in sanitized.values()

    def test_falsy_values_are_redacted_too(self):
        assert sanitize_details({"password": ""}) == {"password": REDACTED}

    def test_redaction_is_shallow(self):
        nested = {"inner": {"password": "x"}}
        assert sanitize_details(nested) == nested
