"""Client identity helpers and request-scoped middlewares."""

import pytest

from app.core.constants import UNKNOWN_IP, UNKNOWN_USER_AGENT
from app.middleware.audit_log import endpoint_template
from app.middleware.correlation_id import sanitize_correlation_id
from app.shared.request_audit import build_client_info, clean_ip, resolve_client_ip


def _scope(client: tuple[str, int] | None = None, headers: dict[str, str] | None = None) -> dict:
    return {
        "type": "http",
        "client": client,
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
    }


class TestCleanIp:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("::ffff:192.168.1.5", "192.168.1.5"),
            ("::1", "127.0.0.1"),
            (" 10.0.0.1 ", "10.0.0.1"),
            ("2001:db8::1", "2001:db8::1"),
            (None, UNKNOWN_IP),
            ("", UNKNOWN_IP),
        ],
    )
    def test_normalization(self, raw: str | None, expected: str) -> None:
        assert clean_ip(raw) == expected


class TestResolveClientIp:
    def test_direct_peer_wins_over_headers(self) -> None:
        scope = _scope(("198.51.100.2", 5000), {"X-Forwarded-For": "1.1.1.1"})
        assert resolve_client_ip(scope) == "198.51.100.2"

    def test_loopback_peer_uses_first_forwarded_hop(self) -> None:
        scope = _scope(("127.0.0.1", 5000), {"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})
        assert resolve_client_ip(scope) == "203.0.113.9"

    def test_missing_peer_falls_back_to_real_ip(self) -> None:
        assert resolve_client_ip(_scope(None, {"X-Real-IP": "::ffff:203.0.113.4"})) == "203.0.113.4"

    def test_nothing_known(self) -> None:
        assert resolve_client_ip(_scope(None)) == UNKNOWN_IP


def test_build_client_info_with_client_hints() -> None:
    info = build_client_info(
        _scope(
            ("198.51.100.2", 1),
            {
                "User-Agent": "Mozilla/5.0",
                "Sec-CH-UA-Platform": '"Windows"',
                "Sec-CH-UA": '"Chromium";v="124"',
            },
        )
    )
    assert info.ip_address == "198.51.100.2"
    assert info.user_agent == "Mozilla/5.0"
    assert info.platform == '"Windows"'
    assert info.browser == '"Chromium";v="124"'


def test_build_client_info_defaults() -> None:
    info = build_client_info(_scope(None))
    assert info.user_agent == UNKNOWN_USER_AGENT
    assert info.platform is None


class TestSanitizeCorrelationId:
    def test_valid_value_kept(self) -> None:
        assert sanitize_correlation_id("req_123-abc") == "req_123-abc"

    @pytest.mark.parametrize("raw", [None, "", "x" * 65, "bad id", "a\nb", "../etc"])
    def test_invalid_value_replaced(self, raw: str | None) -> None:
        new_id = sanitize_correlation_id(raw)
        assert new_id != raw
        assert len(new_id) == 36


class TestEndpointTemplate:
    def test_includes_router_prefix(self) -> None:
        assert (
            endpoint_template("/api/v1/test/organizations/org-7", {"org_id": "org-7"})
            == "/api/v1/test/organizations/{org_id}"
        )

    def test_params_matched_from_the_right(self) -> None:
        assert (
            endpoint_template("/api/v1/orgs/v1/users/5", {"org_id": "v1", "id": 5})
            == "/api/v1/orgs/{org_id}/users/{id}"
        )

    def test_repeated_values(self) -> None:
        assert (
            endpoint_template("/orgs/1/users/1", {"org_id": "1", "id": "1"})
            == "/orgs/{org_id}/users/{id}"
        )

    def test_no_params(self) -> None:
        assert endpoint_template("/api/v1/audit-logs/me", {}) == "/api/v1/audit-logs/me"
