"""
Per-request orchestration:
parse -> decode -> validate freshness -> fetch -> rewrite (optional) -> shape.

Any stage failure short-circuits to the error shape. Nothing is retried and
nothing is kept between calls; the fetcher's connection pool is the only
shared resource.
"""

import logging

from obfuscation import DEFAULT_MODE, PayloadDecoder, parse_target
from relay import config
from relay.errors import DecodeError, RelayError, ValidationError
from relay.fetcher import OutboundFetcher
from relay.freshness import FreshnessValidator
from relay.logger import setup_logger
from relay.models import ProxyRequest
from relay.rewriter import LinkRewriter
from relay.shaper import ResponseShaper

ACTIONS = ("fetch", "get_content")


def _optional_string(body, key):
    value = body.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValidationError(f"{key} must be a string")
    return str(value)


def parse_request(body, request_id=None) -> ProxyRequest:
    """Validate the JSON body of POST /api. Raises ValidationError."""
    if not isinstance(body, dict):
        raise ValidationError("request body must be a JSON object")

    action = body.get("action", body.get("req")) or "fetch"
    if action not in ACTIONS:
        raise ValidationError(f"unsupported action: {str(action)[:20]}")

    data = body.get("data")
    if data is None or (isinstance(data, str) and not data.strip()):
        raise ValidationError("data is required")
    if not isinstance(data, str):
        raise ValidationError("data must be a string")

    ts = body.get("ts")
    # JSON clients sometimes send 1.7e12 style numbers
    if isinstance(ts, float) and ts.is_integer():
        ts = int(ts)

    return ProxyRequest(
        payload=data,
        timestamp_millis=ts,
        request_id=_optional_string(body, "id") or request_id,
        mode=_optional_string(body, "mode"),
        action=action,
    )


def is_html(content_type):
    return not content_type or "html" in content_type.lower()


class RequestPipeline:

    def __init__(self, decoder, validator, fetcher, rewriter, shaper,
                 logger=None, rewrite_links=True):
        self.decoder = decoder
        self.validator = validator
        self.fetcher = fetcher
        self.rewriter = rewriter
        self.shaper = shaper
        self.logger = logger or logging.getLogger("relay.pipeline")
        self.rewrite_links = rewrite_links

    def _fetch_and_rewrite(self, target, log):
        result = self.fetcher.fetch(target)
        log.info(
            f"[FETCH] {target.url} -> {result.status_code} "
            f"({result.elapsed_ms} ms, {len(result.body_text)} chars)"
        )

        html = result.body_text
        if self.rewrite_links and is_html(result.content_type):
            html = self.rewriter.rewrite(html, result.final_url)
        return result, html

    def handle(self, body, request_id=None):
        """Always returns a ProxyResponse dict; never raises."""
        log = logging.LoggerAdapter(self.logger, {"context": request_id or "root"})
        try:
            request = parse_request(body, request_id)
            log = logging.LoggerAdapter(self.logger, {"context": request.request_id or "root"})

            target = self.decoder.decode(request.payload, request.mode)
            log.info(f"[DECODE] mode={request.mode or DEFAULT_MODE} target={target.url}")

            self.validator.validate(request.timestamp_millis)

            result, html = self._fetch_and_rewrite(target, log)
            return self.shaper.success(target, result, html, request.request_id)

        except RelayError as e:
            log.warning(f"[{e.category.value.upper()}] {e}")
            return self.shaper.failure(e)
        except Exception as e:
            log.exception(f"[UNKNOWN] unexpected error: {e}")
            return self.shaper.failure(e)

    def relay_plain(self, url, request_id=None):
        """
        GET /proxy?url=: plaintext target, no payload decoding or freshness
        check. Returns (FetchResult, body); raises RelayError for the caller
        to map onto HTTP statuses.
        """
        log = logging.LoggerAdapter(self.logger, {"context": request_id or "root"})
        if not isinstance(url, str) or not url.strip():
            raise ValidationError("URL parameter required")
        try:
            target = parse_target(url)
        except DecodeError as e:
            raise ValidationError(f"invalid url: {e}") from e

        log.info(f"[PLAIN] target={target.url}")
        try:
            return self._fetch_and_rewrite(target, log)
        except RelayError as e:
            log.warning(f"[{e.category.value.upper()}] {e}")
            raise


def build_pipeline():
    """Wire the pipeline from relay.config."""
    setup_logger(log_file=config.LOG_FILE, level=config.LOG_LEVEL)
    return RequestPipeline(
        decoder=PayloadDecoder(config.SHARED_KEY),
        validator=FreshnessValidator(
            window_ms=config.FRESHNESS_WINDOW_MS,
            require_timestamp=config.REQUIRE_TIMESTAMP,
        ),
        fetcher=OutboundFetcher(
            user_agent=config.USER_AGENT,
            timeout=config.REQUEST_TIMEOUT,
            max_redirects=config.MAX_REDIRECTS,
        ),
        rewriter=LinkRewriter(),
        shaper=ResponseShaper(environment=config.APP_ENV, max_detail=config.MAX_ERROR_DETAIL),
        logger=logging.getLogger("relay.pipeline"),
        rewrite_links=config.REWRITE_LINKS,
    )
