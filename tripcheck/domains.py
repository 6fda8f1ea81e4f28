from urllib.parse import urlsplit


# Chromium reports a failed or blocked navigation as chrome-error://chromewebdata/.
BLOCKED_HOSTNAME = "chromewebdata"
BLOCKED_SCHEME_MARKER = "chrome-error"


def normalize(url: str) -> str:
    raw = (url or "").strip()
    try:
        hostname = urlsplit(raw).hostname
    except ValueError:
        hostname = None
    if not hostname:
        return raw.lower()
    return hostname.lower().removeprefix("www.")


def same_site(current_url: str, expected_hostname: str) -> bool:
    if not expected_hostname:
        return False
    if normalize(current_url) == expected_hostname:
        return True
    # The merchant domain may show up as a subdomain or inside a path.
    return expected_hostname in (current_url or "")


def is_blocked_host(hostname: str) -> bool:
    return hostname == BLOCKED_HOSTNAME or BLOCKED_SCHEME_MARKER in hostname
