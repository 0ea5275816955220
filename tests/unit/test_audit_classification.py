"""Severity, category and table rules for audit entries."""

import pytest

from app.application.services.audit_classification import category_of, severity_of, table_for
from app.shared.enums import AuditCategory, AuditSeverity, TargetType


class TestSeverityOf:
    """HTTP status wins over the action name."""

    @pytest.mark.parametrize("status", [500, 503])
    def test_server_errors(self, status: int) -> None:
        assert severity_of(status, "USER_UPDATE") == AuditSeverity.ERROR

    def test_client_error_is_warning_even_for_plain_action(self) -> None:
        assert severity_of(404, "VIEW_USER") == AuditSeverity.WARNING

    def test_destructive_actions_are_warning(self) -> None:
        assert severity_of(200, "USER_DELETE") == AuditSeverity.WARNING
        assert severity_of(200, "OWNERSHIP_TRANSFER") == AuditSeverity.WARNING

    def test_default_info(self) -> None:
        assert severity_of(200, "VIEW_USER") == AuditSeverity.INFO
        assert severity_of(201) == AuditSeverity.INFO


class TestCategoryOf:
    """First matching keyword rule wins; BUSINESS otherwise."""

    def test_missing_action(self) -> None:
        assert category_of(None) == AuditCategory.BUSINESS
        assert category_of("") == AuditCategory.BUSINESS

    @pytest.mark.parametrize("action", ["LOGIN_SUCCESS", "LOGOUT", "PASSWORD_RESET"])
    def test_auth_actions_are_security(self, action: str) -> None:
        assert category_of(action) == AuditCategory.SECURITY

    def test_system_and_database(self) -> None:
        assert category_of("SYSTEM_STARTUP") == AuditCategory.SYSTEM
        assert category_of("DATABASE_CLEANUP") == AuditCategory.SYSTEM

    def test_failed_login_is_security(self) -> None:
        assert category_of("FAILED_LOGIN") == AuditCategory.SECURITY
        assert category_of("SUSPICIOUS_ACTIVITY") == AuditCategory.SECURITY

    def test_rule_order_login_before_system(self) -> None:
        assert category_of("SYSTEM_LOGIN") == AuditCategory.SECURITY

    def test_rule_order_system_before_failed(self) -> None:
        assert category_of("DATABASE_BACKUP_FAILED") == AuditCategory.SYSTEM

    def test_other_actions_are_business(self) -> None:
        assert category_of("COMPANY_UPDATE") == AuditCategory.BUSINESS


class TestTableFor:
    def test_known_types(self) -> None:
        assert table_for("USER") == "sys_users"
        assert table_for(TargetType.ORGANIZATION) == "sys_organizations"
        assert table_for("COMPANY") == "sys_organizations"
        assert table_for("MEMBER") == "sys_organization_members"
        assert table_for("INVITATION") == "invitations"
        assert table_for("TOKEN") == "sys_refresh_tokens"

    def test_unknown_or_missing(self) -> None:
        assert table_for("OTHER") is None
        assert table_for(None) is None
