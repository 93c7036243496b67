"""
Shared validators for input sanitization and security.

- SSRF guard for server-side fetches of user-supplied URLs
- Object-storage filename sanitization
- Upload type/size checks
- LIKE-pattern escaping for search
- Client-safe rendering of request validation errors
"""

import ipaddress
import re
import socket
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Sequence
from urllib.parse import urlparse

from shared.config.constants import ALLOWED_IMAGE_TYPES, Limits

# Reserved networks a fetched URL may never resolve into
BLOCKED_NETWORKS: tuple[ipaddress.IPv4Network | ipaddress.IPv6Network, ...] = tuple(
    ipaddress.ip_network(cidr)
    for cidr in (
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "0.0.0.0/8",
        "::1/128",
        "fc00::/7",
        "fe80::/10",
    )
)

ALLOWED_URL_SCHEMES = frozenset({"http", "https"})

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")

Resolver = Callable[[str], Sequence[str]]


class UrlValidationError(ValueError):
    """URL rejected by the SSRF guard."""


def resolve_host(hostname: str) -> list[str]:
    """Resolve a hostname to every IPv4/IPv6 address it maps to."""
    infos = socket.getaddrinfo(hostname, None)
    return sorted({info[4][0] for info in infos})


def is_blocked_ip(ip: str) -> bool:
    """True when the address falls inside a reserved network."""
    addr = ipaddress.ip_address(ip.split("%", 1)[0])
    # IPv4-mapped IPv6 (::ffff:127.0.0.1) is checked as IPv4
    mapped = getattr(addr, "ipv4_mapped", None)
    if mapped is not None:
        addr = mapped
    return any(addr.version == net.version and addr in net for net in BLOCKED_NETWORKS)


@dataclass(frozen=True, slots=True)
class ExternalTarget:
    """A URL that passed the SSRF guard, with the addresses it was checked against."""

    url: str
    hostname: str
    addresses: tuple[str, ...]


def resolve_external_url(url: str, resolver: Resolver = resolve_host) -> ExternalTarget:
    """
    Validate a user-supplied URL before the server fetches it.

    Checks, in order: scheme is http/https; hostname is present and not
    localhost; every resolved IP is outside BLOCKED_NETWORKS. Callers that
    connect should use the returned addresses rather than resolving again.

    Raises:
        UrlValidationError: Naming the rule that failed.
    """
    url = (url or "").strip()
    try:
        parsed = urlparse(url)
    except ValueError:
        raise UrlValidationError("invalid URL format")

    scheme = parsed.scheme.lower()
    if scheme not in ALLOWED_URL_SCHEMES:
        raise UrlValidationError(
            f"URL scheme '{scheme}' is not allowed, only http and https are permitted"
        )

    hostname = (parsed.hostname or "").strip()
    if not hostname:
        raise UrlValidationError("URL has no hostname")
    if hostname.lower() == "localhost":
        raise UrlValidationError("requests to localhost are not allowed")

    try:
        ipaddress.ip_address(hostname)
        addresses: Sequence[str] = [hostname]
    except ValueError:
        try:
            addresses = resolver(hostname)
        except OSError as e:
            raise UrlValidationError(f"failed to resolve hostname {hostname}: {e}")

    if not addresses:
        raise UrlValidationError(f"hostname {hostname} did not resolve to any address")

    for ip in addresses:
        if is_blocked_ip(ip):
            raise UrlValidationError(
                f"URL resolves to private IP address {ip}, which is not allowed"
            )

    return ExternalTarget(url=url, hostname=hostname, addresses=tuple(addresses))


def validate_external_url(url: str, resolver: Resolver = resolve_host) -> str:
    """
    Run the SSRF guard on a URL.

    Returns:
        The URL, stripped.

    Raises:
        UrlValidationError: Naming the rule that failed.
    """
    return resolve_external_url(url, resolver).url


def sanitize_filename(name: str) -> str:
    """
    Make a string safe for use in an object path.

    Every character outside [A-Za-z0-9._-] becomes '_', the result is
    truncated to 100 characters, and empty/'.'/'..' become 'file'.
    Applying it twice gives the same result as once.
    """
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", name or "")[: Limits.MAX_FILENAME_LENGTH]
    if cleaned in ("", ".", ".."):
        return "file"
    return cleaned


def validate_upload(content_type: str | None, size: int, max_bytes: int) -> str:
    """
    Validate an uploaded image.

    Returns:
        The normalized content type.

    Raises:
        ValueError: Unsupported content type.
        OverflowError: Larger than max_bytes.
    """
    normalized = (content_type or "").split(";", 1)[0].strip().lower()
    if normalized not in ALLOWED_IMAGE_TYPES:
        raise ValueError("Invalid file type. Allowed: jpeg, png, webp, gif")
    if size > max_bytes:
        raise OverflowError(size)
    return normalized


def escape_like_pattern(value: str) -> str:
    """
    Escape % and _ (and the escape character) for SQL LIKE patterns.
    """
    if not value:
        return value
    value = value.replace("\\", "\\\\")
    value = value.replace("%", "\\%")
    value = value.replace("_", "\\_")
    return value


def sanitize_search_term(term: str | None, max_length: int = Limits.MAX_SEARCH_TERM_LENGTH) -> str:
    """Trim, truncate and collapse whitespace in a search term."""
    if not term:
        return ""
    term = " ".join(term.split())
    return term[:max_length]


def slugify(value: str) -> str:
    """Lowercase, hyphen-separated slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "item"


def split_image_urls(value: str | Iterable[str] | None) -> list[str]:
    """Accept a list or a comma/newline separated string of URLs."""
    if value is None:
        return []
    if isinstance(value, str):
        parts: Iterable[str] = re.split(r"[,\n]", value)
    else:
        parts = value
    return [p.strip() for p in parts if p and p.strip()]


# =============================================================================
# Request validation error rendering
# =============================================================================


def _field_name(loc: Sequence[Any]) -> str:
    for part in reversed(loc):
        if isinstance(part, str) and part not in ("body", "query", "path", "header"):
            return part
    return "request"


def _bound(value: Any) -> str:
    """Numeric limits print without a trailing .0 (90, not 90.0)."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return f"{value:g}"
    return str(value)


def sanitize_validation_error(errors: Sequence[dict[str, Any]]) -> str:
    """
    Render the first request validation error as a user-level message.

    Internal type names, input values and stack traces never leak.
    """
    if not errors:
        return "Invalid request body"

    err = errors[0]
    err_type = str(err.get("type", ""))
    ctx = err.get("ctx") or {}
    loc = err.get("loc") or ()
    field = _field_name(loc)
    msg = str(err.get("msg", "")).lower()

    if err_type == "missing":
        return f"{field} is required"
    if err_type == "value_error" and ("email" in msg or field == "email"):
        return f"{field} must be a valid email address"
    if err_type == "string_too_short":
        return f"{field} must be at least {ctx.get('min_length')} characters"
    if err_type == "string_too_long":
        return f"{field} must be at most {ctx.get('max_length')} characters"
    if err_type == "greater_than_equal":
        return f"{field} must be at least {_bound(ctx.get('ge'))}"
    if err_type == "greater_than":
        return f"{field} must be greater than {_bound(ctx.get('gt'))}"
    if err_type == "less_than_equal":
        return f"{field} must be at most {_bound(ctx.get('le'))}"
    if err_type == "less_than":
        return f"{field} must be less than {_bound(ctx.get('lt'))}"
    if err_type == "too_short":
        return f"{field} must contain at least {ctx.get('min_length')} items"
    if err_type == "too_long":
        return f"{field} must contain at most {ctx.get('max_length')} items"
    if err_type in ("int_parsing", "int_type", "float_parsing", "float_type"):
        return f"{field} must be a number"
    if err_type in ("uuid_parsing", "uuid_type"):
        return f"{field} must be a valid ID"
    if err_type in ("literal_error", "enum"):
        return f"{field} has an invalid value"
    return "Invalid request body"
