"""Attack heuristics and SecurityMonitor.detect_suspicious_patterns."""

import logging

import pytest

from app.application.services.audit_log_service import AuditLogService
from app.middleware.security_monitoring import (
    SecurityConfig,
    SecurityMonitor,
    body_to_text,
    check_sql_injection,
    check_xss,
)
from app.shared.enums import AuditCategory, ThreatType
from tests.fakes import FakeAuditLogRepository

BROWSER_UA = "Mozilla/5.0 (X11; Linux x86_64)"


@pytest.mark.parametrize(
    "text",
    [
        "admin'--",
        "' OR name='x",
        "x OR 1=1",
        "1; DROP TABLE users",
        "1 UNION SELECT password FROM users",
        "%27",
        "%23",
        "a # b",
    ],
)
def test_sql_injection_detected(text: str) -> None:
    assert check_sql_injection(text)


@pytest.mark.parametrize("text", ['{"name": "Somchai", "age": 30}', "order by price", "O'Brien"])
def test_sql_injection_not_detected(text: str) -> None:
    assert not check_sql_injection(text)


@pytest.mark.parametrize(
    "text",
    ["<script>alert(1)</script>", "<SCRIPT src=x>", "javascript:alert(1)", '<img onerror="x">'],
)
def test_xss_detected(text: str) -> None:
    assert check_xss(text)


def test_xss_not_detected() -> None:
    assert not check_xss('{"bio": "I like scripting and online games"}')


def test_body_to_text() -> None:
    assert body_to_text({"q": "x"}) == '{"q": "x"}'
    assert body_to_text(None) == "{}"
    assert body_to_text(b"raw") == "raw"
    assert body_to_text("plain") == "plain"


class TestDetectSuspiciousPatterns:
    """Every finding is logged; SQLi/XSS also become SUSPICIOUS_ACTIVITY entries."""

    @pytest.fixture
    def repo(self) -> FakeAuditLogRepository:
        return FakeAuditLogRepository()

    @pytest.fixture
    def monitor(self, counter_store, repo: FakeAuditLogRepository) -> SecurityMonitor:
        return SecurityMonitor(
            counter_store,
            SecurityConfig(excerpt_length=20),
            audit_service=AuditLogService(repo),
        )

    async def test_sql_injection_logged_once_with_excerpt(
        self,
        monitor: SecurityMonitor,
        repo: FakeAuditLogRepository,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        body = {"q": "' OR 1=1", "padding": "x" * 100}
        with caplog.at_level(logging.WARNING, logger="app.security"):
            findings = await monitor.detect_suspicious_patterns(
                body, ip_address="1.2.3.4", user_agent=BROWSER_UA, endpoint="/api/v1/search"
            )
        assert [f.threat_type for f in findings] == [ThreatType.SQL_INJECTION]
        assert findings[0].excerpt == '{"q": "\' OR 1=1", "p'
        assert len(findings[0].excerpt) == 20
        warnings = [r for r in caplog.records if r.name == "app.security"]
        assert len(warnings) == 1
        assert "SQL_INJECTION" in warnings[0].getMessage()
        [entry] = repo.by_action("SUSPICIOUS_ACTIVITY")
        assert entry.category == AuditCategory.SECURITY.value
        assert entry.ip_address == "1.2.3.4"
        assert entry.request_url == "/api/v1/search"
        assert entry.metadata["threat_type"] == "SQL_INJECTION"
        assert "' OR 1=1" in entry.metadata["excerpt"]

    async def test_xss_and_sqli_both_reported(
        self, monitor: SecurityMonitor, repo: FakeAuditLogRepository
    ) -> None:
        findings = await monitor.detect_suspicious_patterns(
            {"bio": "<script>x</script> -- hi"}, ip_address="1.2.3.4", user_agent=BROWSER_UA
        )
        assert {f.threat_type for f in findings} == {ThreatType.SQL_INJECTION, ThreatType.XSS}
        assert len(repo.by_action("SUSPICIOUS_ACTIVITY")) == 2

    async def test_clean_body_no_findings(
        self, monitor: SecurityMonitor, repo: FakeAuditLogRepository
    ) -> None:
        findings = await monitor.detect_suspicious_patterns(
            {"name": "Somchai"}, ip_address="1.2.3.4", user_agent=BROWSER_UA
        )
        assert findings == []
        assert repo.logs == []

    @pytest.mark.parametrize("user_agent", [None, "", "curl"])
    async def test_missing_or_short_user_agent_is_logged_only(
        self,
        user_agent: str | None,
        monitor: SecurityMonitor,
        repo: FakeAuditLogRepository,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="app.security"):
            findings = await monitor.detect_suspicious_patterns(
                None, ip_address="1.2.3.4", user_agent=user_agent
            )
        assert [f.threat_type for f in findings] == [ThreatType.SUSPICIOUS_USER_AGENT]
        assert "SUSPICIOUS_USER_AGENT" in caplog.text
        assert repo.logs == []

    async def test_log_policy_never_blocks(self, monitor: SecurityMonitor) -> None:
        findings = await monitor.detect_suspicious_patterns(
            {"q": "<script>"}, ip_address="1.2.3.4", user_agent=BROWSER_UA
        )
        assert findings
        assert not monitor.should_block(findings)

    async def test_block_policy_blocks_body_findings_only(self, counter_store) -> None:
        monitor = SecurityMonitor(counter_store, SecurityConfig(suspicious_request_policy="block"))
        attack = await monitor.detect_suspicious_patterns(
            {"q": "<script>"}, ip_address="1.2.3.4", user_agent=BROWSER_UA
        )
        odd_agent = await monitor.detect_suspicious_patterns(
            None, ip_address="1.2.3.4", user_agent="x"
        )
        assert monitor.should_block(attack)
        assert not monitor.should_block(odd_agent)
