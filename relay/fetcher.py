"""
Outbound HTTP fetching for the relay.
One GET per request through a shared session; every HTTP status the target
returns is a result, only transport failures raise.
"""

import time
import logging
from http.cookiejar import DefaultCookiePolicy

import requests
from charset_normalizer import from_bytes

from relay.errors import (
    DNS_MARKERS,
    DnsError,
    FetchTimeoutError,
    NetworkError,
    message_matches,
)
from relay.models import FetchResult, TargetDescriptor

logger = logging.getLogger("relay.fetcher")

# Headers kept from the target response
KEPT_HEADERS = ("content-type", "content-length", "last-modified", "etag", "server", "date")

# Body is read in chunks so the overall deadline is checked while it arrives
CHUNK_SIZE = 8192


def browser_headers(user_agent):
    """Many sites refuse requests that do not look like a browser navigation."""
    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9,ja;q=0.8",
        "Accept-Encoding": "gzip, deflate",
        "DNT": "1",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Sec-Fetch-User": "?1",
        "Cache-Control": "max-age=0",
    }


def decode_body(body, content_type, declared_encoding):
    """Declared charset first, then detection like requests' apparent_encoding."""
    encoding = declared_encoding if "charset" in content_type.lower() else None
    if encoding is None and body:
        best = from_bytes(body).best()
        encoding = best.encoding if best else None
    try:
        return body.decode(encoding or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


class OutboundFetcher:
    """
    Holds the connection pool shared by all request threads.
    The session never stores cookies: a Set-Cookie from one client's target
    must not be replayed on another client's fetch.
    """

    def __init__(self, user_agent, timeout=15, max_redirects=5, session=None, clock=time.monotonic):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.max_redirects = max_redirects
        self.session.headers.update(browser_headers(user_agent))
        self.session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))
        self._clock = clock

    def _translate(self, e, url):
        if isinstance(e, requests.exceptions.Timeout):
            return FetchTimeoutError(f"timeout after {self.timeout}s fetching {url}")
        if isinstance(e, requests.exceptions.TooManyRedirects):
            return NetworkError(f"too many redirects fetching {url}")
        if isinstance(e, requests.exceptions.ConnectionError):
            if message_matches(str(e), DNS_MARKERS):
                return DnsError(f"could not resolve host for {url}")
            return NetworkError(f"connection failed: {e}")
        return NetworkError(f"request failed: {e}")

    def fetch(self, target: TargetDescriptor) -> FetchResult:
        # requests' timeout bounds each connect/read; the deadline bounds the whole body
        start_time = self._clock()
        deadline = start_time + self.timeout
        try:
            r = self.session.get(target.url, timeout=self.timeout, allow_redirects=True, stream=True)
        except requests.exceptions.RequestException as e:
            raise self._translate(e, target.url) from e

        try:
            chunks = []
            for chunk in r.iter_content(CHUNK_SIZE):
                chunks.append(chunk)
                if self._clock() > deadline:
                    raise FetchTimeoutError(f"timeout after {self.timeout}s reading {target.url}")
        except requests.exceptions.RequestException as e:
            raise self._translate(e, target.url) from e
        finally:
            r.close()

        content_type = r.headers.get("Content-Type", "")
        body_text = decode_body(b"".join(chunks), content_type, r.encoding)
        elapsed_ms = int((self._clock() - start_time) * 1000)
        headers = {k: r.headers[k] for k in KEPT_HEADERS if k in r.headers}
        logger.debug(f"[FETCH] {target.url} -> {r.status_code} in {elapsed_ms} ms")

        return FetchResult(
            status_code=r.status_code,
            headers=headers,
            body_text=body_text,
            final_url=r.url or target.url,
            content_type=content_type,
            elapsed_ms=elapsed_ms,
        )

    def close(self):
        self.session.close()
