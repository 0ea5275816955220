"""Core constants: redaction and audit storage names.

Single source of truth for literal values shared by the audit pipeline and
security monitoring.
"""

# Replacement value for sensitive fields in audit payloads
REDACTION_MARKER = "***REDACTED***"

# Matched case-insensitively as substrings of dict keys ("oldPassword", "reset_token", ...)
SENSITIVE_FIELD_FRAGMENTS: tuple[str, ...] = (
    "password",
    "password_hash",
    "oldpassword",
    "newpassword",
    "token",
    "refreshtoken",
    "accesstoken",
    "reset_token",
    "credit_card",
    "cvv",
    "ssn",
    "api_key",
    "secret",
)

AUDIT_LOG_TABLE = "sys_audit_logs"

# Storage tables for audited target types
TARGET_TABLES: dict[str, str] = {
    "USER": "sys_users",
    "COMPANY": "sys_organizations",
    "ORGANIZATION": "sys_organizations",
    "MEMBER": "sys_organization_members",
    "INVITATION": "invitations",
    "TOKEN": "sys_refresh_tokens",
}

SECURITY_EVENT_TAGS: tuple[str, ...] = ("security", "monitoring")

# Path params checked (in order) for the id of the audited resource
TARGET_ID_PATH_PARAMS: tuple[str, ...] = ("id", "org_id", "user_id", "member_id")

UNKNOWN_IP = "unknown"
UNKNOWN_USER_AGENT = "unknown"
