from enum import Enum


class ErrorCategory(Enum):
    TIMEOUT = "timeout"
    DNS = "dns"
    DECODE = "decode"
    STALE = "stale"
    MALFORMED_REQUEST = "malformed_request"
    NETWORK = "network"
    UNKNOWN = "unknown"


class RelayError(Exception):
    """Base relay exception. Subclasses pin the user-facing category."""
    category = ErrorCategory.UNKNOWN


class DecodeError(RelayError):
    """Payload is not valid base64 or does not decode to an http(s) URL."""
    category = ErrorCategory.DECODE


class StaleRequestError(RelayError):
    """Client timestamp is outside the freshness window."""
    category = ErrorCategory.STALE


class ValidationError(RelayError):
    """Missing or invalid request fields."""
    category = ErrorCategory.MALFORMED_REQUEST


class FetchError(RelayError):
    """Transport-level failure of the outbound request."""
    category = ErrorCategory.NETWORK


class FetchTimeoutError(FetchError):
    category = ErrorCategory.TIMEOUT


class DnsError(FetchError):
    category = ErrorCategory.DNS


class NetworkError(FetchError):
    category = ErrorCategory.NETWORK


# Substrings that identify a failure kind in foreign exception messages
TIMEOUT_MARKERS = ("timeout", "timed out")
DNS_MARKERS = (
    "enotfound",
    "getaddrinfo",
    "name or service not known",
    "nodename nor servname",
    "failed to resolve",
    "name resolution",
    "nameresolutionerror",
)


def message_matches(message, markers):
    lowered = (message or "").lower()
    return any(marker in lowered for marker in markers)
