"""Counter key builders. Single place for key format (DRY)."""


def failed_login_key(prefix: str, ip_address: str) -> str:
    """Key of the failed-login counter for a normalized client IP.

    IPs are used verbatim: IPv6 addresses contain ':' and must not be split.
    """
    if not ip_address:
        raise ValueError("ip_address must not be empty")
    return f"{prefix}{ip_address}"
