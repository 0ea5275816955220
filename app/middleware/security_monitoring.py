"""Security monitoring: client info, request logging, attack heuristics, brute force.

SecurityMonitor holds the decision logic and is built once in the lifespan
(app.state.security_monitor). The raw-ASGI middlewares below and the
dependencies in app.api.v1.dependencies.security read it from there.

Brute force: failed logins increment a counter per normalized client IP.
When the count reaches the threshold the counter gets a TTL equal to the
lockout duration, set only if it has none, so further failures during the
lockout never extend it. The IP is locked out while its counter is at or
over the threshold; the key disappears when the TTL elapses. Counter store
errors fail open.
"""

from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable

from starlette.responses import JSONResponse

from app.application.services.audit_log_service import AuditLogService
from app.core.config import Settings
from app.domain.exceptions import TooManyFailedAttemptsException
from app.infrastructure.cache.counter_protocol import CounterStore
from app.infrastructure.cache.keys import failed_login_key
from app.shared.background import BackgroundTaskRunner
from app.shared.enums import AuditSeverity, ThreatType
from app.shared.request_audit import build_client_info, clean_ip
from app.shared.telemetry.logging import get_security_logger, log_suspicious_activity

logger = logging.getLogger(__name__)
security_logger = get_security_logger()

SECURITY_MONITOR_STATE_KEY = "security_monitor"

# Quote followed by a comment, "' OR x=", OR 1=1, stacked DROP TABLE,
# UNION SELECT, url-encoded quote/hash, SQL line comment, hash comment.
SQL_INJECTION_PATTERN = re.compile(
    r"('[\s\S]*--)"
    r"|('\s*OR\s+[^=]+=)"
    r"|(\bOR\s+1\s*=\s*1\b)"
    r"|(;\s*DROP\s+TABLE)"
    r"|(UNION\s+SELECT)"
    r"|(%27)|(--)|(%23)|(#)",
    re.IGNORECASE,
)

XSS_PATTERN = re.compile(
    r"<script|javascript:|\bon(?:error|load|click|mouseover)\s*=",
    re.IGNORECASE,
)

_THREAT_MESSAGES = {
    ThreatType.SQL_INJECTION: "Possible SQL injection attempt detected",
    ThreatType.XSS: "Possible XSS attempt detected",
    ThreatType.SUSPICIOUS_USER_AGENT: "Suspicious or missing user agent",
}


def check_sql_injection(text: str) -> bool:
    """True if text matches the SQL injection heuristic."""
    return bool(SQL_INJECTION_PATTERN.search(text))


def check_xss(text: str) -> bool:
    """True if text matches the XSS heuristic."""
    return bool(XSS_PATTERN.search(text))


def body_to_text(body: Any) -> str:
    """Serialize a request body the way it is scanned and excerpted."""
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        return body
    return json.dumps(body if body is not None else {}, ensure_ascii=False, default=str)


@dataclass(frozen=True)
class SecurityConfig:
    """Thresholds and policies for SecurityMonitor."""

    max_failed_attempts: int = 5
    lockout_seconds: int = 15 * 60
    idle_seconds: int = 24 * 60 * 60
    key_prefix: str = "bf_protect:"
    lockout_message: str = "คุณทำรายการผิดพลาดเกินกำหนด กรุณารอ 15 นาที"
    suspicious_request_policy: str = "log"
    excerpt_length: int = 200
    min_user_agent_length: int = 5

    @classmethod
    def from_settings(cls, settings: Settings) -> SecurityConfig:
        return cls(
            max_failed_attempts=settings.brute_force_max_failed_attempts,
            lockout_seconds=settings.brute_force_lockout_seconds,
            idle_seconds=settings.brute_force_idle_seconds,
            key_prefix=settings.brute_force_key_prefix,
            lockout_message=settings.brute_force_lockout_message,
            suspicious_request_policy=settings.suspicious_request_policy,
            excerpt_length=settings.suspicious_body_excerpt_length,
            min_user_agent_length=settings.suspicious_min_user_agent_length,
        )

    @property
    def blocks_suspicious_requests(self) -> bool:
        return self.suspicious_request_policy == "block"


@dataclass(frozen=True)
class SuspiciousFinding:
    """One heuristic match on a request."""

    threat_type: ThreatType
    message: str
    excerpt: str | None = None


class SecurityMonitor:
    """Suspicious-pattern detection and brute-force lockout over a CounterStore."""

    def __init__(
        self,
        store: CounterStore,
        config: SecurityConfig | None = None,
        *,
        audit_service: AuditLogService | None = None,
        runner: BackgroundTaskRunner | None = None,
    ) -> None:
        self.store = store
        self.config = config or SecurityConfig()
        self._audit = audit_service
        self._runner = runner

    def _key(self, ip: str | None) -> str:
        return failed_login_key(self.config.key_prefix, clean_ip(ip))

    # ---- Suspicious patterns ----

    async def detect_suspicious_patterns(
        self,
        body: Any,
        *,
        ip_address: str | None,
        user_agent: str | None,
        endpoint: str | None = None,
        user_id: str | None = None,
    ) -> list[SuspiciousFinding]:
        """Scan a request body and user agent; log every finding. Never blocks.

        SQLi and XSS findings are also written to the audit log as
        SUSPICIOUS_ACTIVITY when an audit service is configured.
        """
        text = body_to_text(body)
        excerpt = text[: self.config.excerpt_length]
        findings: list[SuspiciousFinding] = []
        if check_sql_injection(text):
            findings.append(
                SuspiciousFinding(ThreatType.SQL_INJECTION, _THREAT_MESSAGES[ThreatType.SQL_INJECTION], excerpt)
            )
        if check_xss(text):
            findings.append(
                SuspiciousFinding(ThreatType.XSS, _THREAT_MESSAGES[ThreatType.XSS], excerpt)
            )
        for finding in findings:
            log_suspicious_activity(
                finding.message,
                ip_address,
                user_agent,
                {
                    "threat_type": finding.threat_type.value,
                    "endpoint": endpoint,
                    "body": finding.excerpt,
                },
            )
            await self._record_audit(finding, ip_address, user_agent, endpoint, user_id)

        if not user_agent or len(user_agent) < self.config.min_user_agent_length:
            finding = SuspiciousFinding(
                ThreatType.SUSPICIOUS_USER_AGENT,
                _THREAT_MESSAGES[ThreatType.SUSPICIOUS_USER_AGENT],
            )
            findings.append(finding)
            log_suspicious_activity(
                finding.message,
                ip_address,
                user_agent or "unknown",
                {"threat_type": finding.threat_type.value, "endpoint": endpoint},
            )
        return findings

    def should_block(self, findings: list[SuspiciousFinding]) -> bool:
        """True if the block policy is active and a body heuristic matched."""
        return self.config.blocks_suspicious_requests and any(
            f.threat_type in (ThreatType.SQL_INJECTION, ThreatType.XSS) for f in findings
        )

    async def _record_audit(
        self,
        finding: SuspiciousFinding,
        ip_address: str | None,
        user_agent: str | None,
        endpoint: str | None,
        user_id: str | None,
    ) -> None:
        if self._audit is None:
            return
        coro = self._audit.log_security(
            "SUSPICIOUS_ACTIVITY",
            finding.message,
            user_id,
            ip_address,
            AuditSeverity.WARNING.value,
            {
                "user_agent": user_agent,
                "request_url": endpoint,
                "metadata": {
                    "threat_type": finding.threat_type.value,
                    "excerpt": finding.excerpt,
                },
            },
        )
        if self._runner is not None:
            self._runner.spawn(coro, name="audit-suspicious-activity")
        else:
            await coro

    # ---- Brute force ----

    async def failed_attempts(self, ip: str | None) -> int:
        """Current failed-login count for ip (0 when none or on store error)."""
        try:
            return await self.store.get(self._key(ip)) or 0
        except Exception:
            logger.warning("Brute force counter read failed; allowing request", exc_info=True)
            return 0

    async def is_locked_out(self, ip: str | None) -> bool:
        """True while ip's counter is at or over the threshold and not yet expired.

        A counter over the threshold without an expiry (the EXPIRE after the
        threshold-crossing increment failed) gets its lockout window here, so
        the lockout still ends after lockout_seconds.
        """
        if await self.failed_attempts(ip) < self.config.max_failed_attempts:
            return False
        key = self._key(ip)
        try:
            if await self.store.ttl(key) is None:
                started = await self.store.expire(
                    key, self.config.lockout_seconds, only_if_unset=True
                )
                if started:
                    logger.warning("Restored missing lockout expiry for %s", clean_ip(ip))
        except Exception:
            logger.warning("Brute force lockout expiry check failed", exc_info=True)
        return True

    async def lockout_remaining(self, ip: str | None) -> float | None:
        """Seconds until ip's lockout ends, or None if not locked out."""
        if not await self.is_locked_out(ip):
            return None
        try:
            return await self.store.ttl(self._key(ip))
        except Exception:
            logger.warning("Brute force TTL read failed", exc_info=True)
            return None

    async def check_brute_force(self, ip: str | None, user_agent: str | None = None) -> None:
        """Raise TooManyFailedAttemptsException while ip is locked out."""
        attempts = await self.failed_attempts(ip)
        if attempts < self.config.max_failed_attempts:
            return
        log_suspicious_activity(
            "Brute force attempt detected - too many failed logins",
            clean_ip(ip),
            user_agent or "unknown",
            {"attempts": attempts, "threat_type": ThreatType.BRUTE_FORCE.value},
        )
        remaining = await self.lockout_remaining(ip)
        raise TooManyFailedAttemptsException(
            self.config.lockout_message,
            retry_after_seconds=int(remaining) if remaining is not None else None,
        )

    async def record_failed_login(self, ip: str | None) -> int:
        """Count one failed login for ip; start the lockout when the threshold is reached.

        Returns the new count (0 if the store failed).
        """
        key = self._key(ip)
        try:
            count = await self.store.incr(key)
            if count >= self.config.max_failed_attempts:
                started = await self.store.expire(
                    key, self.config.lockout_seconds, only_if_unset=True
                )
                if started:
                    security_logger.warning(
                        "Brute force lockout started ip=%s attempts=%d lockout_seconds=%d",
                        clean_ip(ip),
                        count,
                        self.config.lockout_seconds,
                    )
            return count
        except Exception:
            logger.exception("Failed to record failed login")
            return 0

    async def clear_failed_logins(self, ip: str | None) -> None:
        """Forget ip's failures (successful login or manual clear)."""
        try:
            await self.store.delete(self._key(ip))
        except Exception:
            logger.exception("Failed to clear failed logins")

    async def sweep(self) -> int:
        """Remove counters idle for longer than the idle threshold."""
        removed = await self.store.sweep(self.config.idle_seconds)
        if removed:
            logger.info("Removed %d idle failed-login counters", removed)
        return removed


def get_monitor_from_scope(scope: dict) -> SecurityMonitor | None:
    app = scope.get("app")
    state = getattr(app, "state", None)
    return getattr(state, SECURITY_MONITOR_STATE_KEY, None) if state is not None else None


# ---- Raw ASGI middlewares ----


def ClientInfoMiddleware(app: Callable) -> Callable:
    """Attach normalized ClientInfo (IP, user agent, client hints) to request state. Raw ASGI."""

    async def asgi_app(scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] == "http":
            scope.setdefault("state", {})["client_info"] = build_client_info(scope)
        await app(scope, receive, send)

    return asgi_app


def _is_expected_401(path: str, expected_paths: tuple[str, ...]) -> bool:
    return any(fragment in path for fragment in expected_paths)


def RequestLoggerMiddleware(
    app: Callable, expected_401_paths: tuple[str, ...] = ("/auth/", "/refresh")
) -> Callable:
    """Log 4xx (warning) and 5xx (error) responses with duration. Raw ASGI.

    401s on expected_401_paths are normal auth traffic and are not logged.
    """

    async def asgi_app(scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await app(scope, receive, send)
            return
        started = time.perf_counter()
        status_code = 0

        async def send_wrapper(message: dict) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await app(scope, receive, send_wrapper)
        except Exception:
            # Becomes a 500 in the outermost server middleware
            if status_code < 500:
                status_code = 500
            log_response(scope, status_code, started)
            raise
        log_response(scope, status_code, started)

    def log_response(scope: dict, status_code: int, started: float) -> None:
        if status_code < 400:
            return
        path = scope.get("path", "")
        if status_code == 401 and _is_expected_401(path, expected_401_paths):
            return
        info = scope.get("state", {}).get("client_info") or build_client_info(scope)
        duration_ms = int((time.perf_counter() - started) * 1000)
        if status_code >= 500:
            logger.error(
                "HTTP %d on %s %s ip=%s duration=%dms",
                status_code,
                scope.get("method"),
                path,
                info.ip_address,
                duration_ms,
            )
            return
        log_suspicious_activity(
            f"HTTP {status_code} on {scope.get('method')} {path}",
            info.ip_address,
            info.user_agent,
            {"status_code": status_code, "duration": f"{duration_ms}ms"},
        )

    return asgi_app


def BruteForceProtectionMiddleware(
    app: Callable, protected_paths: tuple[str, ...] = ()
) -> Callable:
    """Reject locked-out IPs with 429 on protected paths (e.g. login). Raw ASGI."""

    async def asgi_app(scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http" or not any(
            scope.get("path", "").startswith(p) for p in protected_paths
        ):
            await app(scope, receive, send)
            return
        monitor = get_monitor_from_scope(scope)
        if monitor is None:
            await app(scope, receive, send)
            return
        info = scope.get("state", {}).get("client_info") or build_client_info(scope)
        try:
            await monitor.check_brute_force(info.ip_address, info.user_agent)
        except TooManyFailedAttemptsException as exc:
            headers = {}
            retry_after = exc.details.get("retry_after_seconds")
            if retry_after is not None:
                headers["Retry-After"] = str(retry_after)
            response = JSONResponse(status_code=429, content=exc.to_dict(), headers=headers)
            await response(scope, receive, send)
            return
        await app(scope, receive, send)

    return asgi_app
