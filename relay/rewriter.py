"""
Best-effort rewriting of relative src/href values to absolute URLs.
Regex driven, not an HTML parser: it must survive broken markup, and any
value it cannot resolve is left exactly as it was.
"""

import re
from urllib.parse import urljoin, urlsplit

# src= / href= with a single- or double-quoted value; data-src, xlink:href
# and other prefixed names are not matched
ATTRIBUTE_RE = re.compile(
    r"""(?P<prefix>(?<![\w:-])(?:src|href)\s*=\s*)(?P<quote>["'])(?P<value>.*?)(?P=quote)""",
    re.IGNORECASE | re.DOTALL,
)

ABSOLUTE_PREFIXES = ("http://", "https://", "data:", "javascript:")


def is_absolute(value):
    return value.lstrip().lower().startswith(ABSOLUTE_PREFIXES)


def resolve(base_url, value):
    """Join value onto base_url; raises ValueError when it cannot be resolved."""
    if value.startswith(":"):
        raise ValueError(f"empty scheme in {value!r}")
    if any(ord(c) < 32 for c in value):
        raise ValueError("control character in URL")
    joined = urljoin(base_url, value)
    parts = urlsplit(joined)
    parts.port
    return joined


class LinkRewriter:

    def rewrite(self, html, base_url):
        if not isinstance(html, str) or not html:
            return html

        def _replace(match):
            value = match.group("value")
            if is_absolute(value):
                return match.group(0)
            try:
                absolute = resolve(base_url, value)
            except ValueError:
                return match.group(0)
            quote = match.group("quote")
            return f"{match.group('prefix')}{quote}{absolute}{quote}"

        return ATTRIBUTE_RE.sub(_replace, html)
