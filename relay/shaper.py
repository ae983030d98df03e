"""
Builds the JSON bodies returned by POST /api.

Success: {success, html, originalUrl, fetchedAt, requestId, statusCode}
Failure: {error, code, html}; html is a standalone page the client can render.
The two shapes never share the 'success' key.
"""

import html as html_lib
from datetime import datetime, timezone

from relay.errors import (
    DNS_MARKERS,
    TIMEOUT_MARKERS,
    ErrorCategory,
    RelayError,
    message_matches,
)

TEXTUAL_TYPES = ("text", "html", "xml", "json", "javascript")

MESSAGES = {
    ErrorCategory.TIMEOUT: "The target site took too long to respond.",
    ErrorCategory.DNS: "The target host could not be found.",
    ErrorCategory.DECODE: "The request payload could not be decoded.",
    ErrorCategory.STALE: "The request has expired.",
    ErrorCategory.MALFORMED_REQUEST: "The request was malformed.",
    ErrorCategory.NETWORK: "Could not connect to the target site.",
    ErrorCategory.UNKNOWN: "An unexpected error occurred.",
}

REMEDIES = {
    ErrorCategory.TIMEOUT: [
        "The site may be slow or temporarily down. Try again in a moment.",
        "Check that the address points at a page, not a large download.",
    ],
    ErrorCategory.DNS: [
        "Check the address for typos.",
        "The domain may have expired or not exist.",
    ],
    ErrorCategory.DECODE: [
        "Reload the page so the client sends a freshly encoded request.",
        "Make sure the client and the relay use the same decoding mode.",
    ],
    ErrorCategory.STALE: [
        "Reload the page and try again.",
        "Check that your device clock is set correctly.",
    ],
    ErrorCategory.MALFORMED_REQUEST: [
        "Reload the page and try again.",
        "If you are calling the API directly, check the request fields.",
    ],
    ErrorCategory.NETWORK: [
        "The site may be refusing connections. Try again later.",
        "Try opening the address directly in your browser.",
    ],
    ErrorCategory.UNKNOWN: [
        "Try again in a moment.",
        "If the problem continues, contact the site administrator.",
    ],
}

FALLBACK_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{title}</title>
<style>
body {{ font-family: -apple-system, "Segoe UI", Roboto, sans-serif; background: #f5f6f8; color: #222; margin: 0; }}
.box {{ max-width: 560px; margin: 10vh auto; background: #fff; border-radius: 8px; padding: 32px; box-shadow: 0 2px 12px rgba(0,0,0,.08); }}
h1 {{ font-size: 20px; margin-top: 0; color: #c0392b; }}
code {{ background: #f0f0f0; padding: 2px 6px; border-radius: 4px; }}
li {{ margin: 6px 0; }}
</style>
</head>
<body>
<div class="box">
<h1>{title}</h1>
<p>{message}</p>
<p>Error code: <code>{code}</code></p>
<ul>
{remedies}
</ul>
</div>
</body>
</html>"""

IFRAME_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{url}</title>
<style>html, body, iframe {{ margin: 0; width: 100%; height: 100%; border: 0; }}</style>
</head>
<body>
<iframe src="{url}" sandbox="allow-scripts allow-same-origin allow-forms"></iframe>
</body>
</html>"""


def utc_timestamp():
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def truncate(text, limit):
    text = " ".join(str(text).split())
    return text if len(text) <= limit else text[:limit] + "..."


def categorize(error):
    """Relay errors carry their category; anything else is matched by message."""
    if isinstance(error, RelayError):
        return error.category
    if isinstance(error, TimeoutError):
        return ErrorCategory.TIMEOUT
    message = str(error)
    if message_matches(message, TIMEOUT_MARKERS):
        return ErrorCategory.TIMEOUT
    if message_matches(message, DNS_MARKERS):
        return ErrorCategory.DNS
    return ErrorCategory.UNKNOWN


def is_textual(content_type):
    if not content_type:
        return True
    lowered = content_type.lower()
    return any(t in lowered for t in TEXTUAL_TYPES)


class ResponseShaper:

    def __init__(self, environment="development", max_detail=100):
        self.environment = environment
        self.max_detail = max_detail

    def success(self, target, result, html, request_id=None):
        if not is_textual(result.content_type):
            html = IFRAME_TEMPLATE.format(url=html_lib.escape(target.url, quote=True))
        return {
            "success": True,
            "html": html,
            "originalUrl": target.url,
            "fetchedAt": utc_timestamp(),
            "requestId": request_id,
            "statusCode": result.status_code,
        }

    def message_for(self, error, category):
        message = MESSAGES[category]
        if category == ErrorCategory.MALFORMED_REQUEST:
            # Our own validation text, safe to show
            return f"{message} {truncate(error, self.max_detail)}"
        if category == ErrorCategory.UNKNOWN and self.environment != "production":
            return f"{message} {truncate(error, self.max_detail)}"
        return message

    def failure(self, error):
        category = categorize(error)
        message = self.message_for(error, category)
        return {
            "error": message,
            "code": category.value,
            "html": self.fallback_html(category, message),
        }

    def fallback_html(self, category, message):
        remedies = "\n".join(
            f"<li>{html_lib.escape(r)}</li>" for r in REMEDIES[category]
        )
        return FALLBACK_TEMPLATE.format(
            title=html_lib.escape(MESSAGES[category]),
            message=html_lib.escape(message),
            code=html_lib.escape(category.value),
            remedies=remedies,
        )
