"""
RequestPipeline with a mocked fetcher: stage ordering, short-circuiting and
the exactly-one-shape guarantee.
"""

import unittest
from unittest.mock import MagicMock

from obfuscation import PayloadDecoder
from relay.errors import DnsError, ValidationError
from relay.freshness import FreshnessValidator
from relay.models import FetchResult
from relay.pipeline import RequestPipeline, parse_request
from relay.rewriter import LinkRewriter
from relay.shaper import ResponseShaper

KEY = "test-key"
NOW = 1_760_000_000_000


def make_pipeline(fetcher, rewrite_links=True):
    return RequestPipeline(
        decoder=PayloadDecoder(KEY),
        validator=FreshnessValidator(window_ms=300000, clock=lambda: NOW),
        fetcher=fetcher,
        rewriter=LinkRewriter(),
        shaper=ResponseShaper(),
        logger=MagicMock(),
        rewrite_links=rewrite_links,
    )


class TestParseRequest(unittest.TestCase):
    def test_minimal_body(self):
        request = parse_request({"data": "abc"})
        self.assertEqual(request.payload, "abc")
        self.assertEqual(request.action, "fetch")
        self.assertIsNone(request.timestamp_millis)

    def test_req_alias_and_header_request_id(self):
        request = parse_request({"req": "get_content", "data": "abc"}, request_id="hdr-1")
        self.assertEqual(request.action, "get_content")
        self.assertEqual(request.request_id, "hdr-1")
        self.assertEqual(parse_request({"data": "abc", "id": 7}, request_id="hdr-1").request_id, "7")

    def test_integral_float_timestamp(self):
        self.assertEqual(parse_request({"data": "abc", "ts": 1.76e12}).timestamp_millis, 1760000000000)

    def test_invalid_bodies(self):
        for body in [
            None,
            [],
            "data",
            {},
            {"data": ""},
            {"data": 42},
            {"action": "delete", "data": "abc"},
            {"data": "abc", "mode": ["xor"]},
            {"data": "abc", "id": {"a": 1}},
        ]:
            with self.subTest(body=body):
                with self.assertRaises(ValidationError):
                    parse_request(body)


class TestRequestPipeline(unittest.TestCase):
    def setUp(self):
        self.decoder = PayloadDecoder(KEY)
        self.fetcher = MagicMock()
        self.fetcher.fetch.return_value = FetchResult(
            status_code=200,
            headers={"content-type": "text/html"},
            body_text='<img src="logo.png"><a href="https://other.test/">o</a>',
            final_url="https://example.com/docs/",
            content_type="text/html; charset=utf-8",
            elapsed_ms=12,
        )
        self.pipeline = make_pipeline(self.fetcher)

    def body(self, url="https://example.com/docs", **extra):
        body = {"action": "fetch", "data": self.decoder.encode(url), "ts": NOW, "id": "req-9"}
        body.update(extra)
        return body

    def test_success_rewrites_against_final_url(self):
        result = self.pipeline.handle(self.body())
        self.assertIs(result["success"], True)
        self.assertEqual(result["originalUrl"], "https://example.com/docs")
        self.assertEqual(result["requestId"], "req-9")
        self.assertEqual(result["statusCode"], 200)
        self.assertIn('src="https://example.com/docs/logo.png"', result["html"])
        self.assertIn('href="https://other.test/"', result["html"])
        self.assertEqual(self.fetcher.fetch.call_args[0][0].url, "https://example.com/docs")

    def test_rewrite_can_be_disabled(self):
        result = make_pipeline(self.fetcher, rewrite_links=False).handle(self.body())
        self.assertIn('src="logo.png"', result["html"])

    def test_non_html_not_rewritten(self):
        self.fetcher.fetch.return_value = FetchResult(200, {}, '{"src": "x"}', "https://example.com/", "application/json")
        result = self.pipeline.handle(self.body())
        self.assertEqual(result["html"], '{"src": "x"}')

    def test_target_status_relayed(self):
        self.fetcher.fetch.return_value = FetchResult(503, {}, "down", "https://example.com/", "text/html")
        result = self.pipeline.handle(self.body())
        self.assertIs(result["success"], True)
        self.assertEqual(result["statusCode"], 503)

    def test_other_modes(self):
        for mode in ["base64", "xor", "aes"]:
            with self.subTest(mode=mode):
                body = self.body(data=self.decoder.encode("https://example.com/docs", mode), mode=mode)
                self.assertIs(self.pipeline.handle(body)["success"], True)

    def test_decode_failure_skips_fetch(self):
        result = self.pipeline.handle(self.body(data="@@not-base64@@"))
        self.assertEqual(result["code"], "decode")
        self.assertNotIn("success", result)
        self.fetcher.fetch.assert_not_called()

    def test_stale_request_skips_fetch(self):
        result = self.pipeline.handle(self.body(ts=NOW - 6 * 60 * 1000))
        self.assertEqual(result["code"], "stale")
        self.fetcher.fetch.assert_not_called()

    def test_missing_data(self):
        result = self.pipeline.handle({"action": "fetch", "ts": NOW})
        self.assertEqual(result["code"], "malformed_request")
        self.assertIn("data is required", result["error"])
        self.assertNotIn("success", result)

    def test_fetch_failure(self):
        self.fetcher.fetch.side_effect = DnsError("could not resolve host")
        result = self.pipeline.handle(self.body())
        self.assertEqual(result["code"], "dns")
        self.assertIn("html", result)

    def test_unexpected_error_is_shaped(self):
        self.fetcher.fetch.side_effect = RuntimeError("kaboom")
        result = self.pipeline.handle(self.body())
        self.assertEqual(result["code"], "unknown")
        self.assertIn("kaboom", result["error"])
        self.fetcher.fetch.assert_called_once()


class TestRelayPlain(unittest.TestCase):
    def setUp(self):
        self.fetcher = MagicMock()
        self.fetcher.fetch.return_value = FetchResult(
            404, {}, '<img src="logo.png">', "https://example.com/docs/", "text/html")
        self.pipeline = make_pipeline(self.fetcher)

    def test_fetches_and_rewrites_plain_url(self):
        result, body = self.pipeline.relay_plain(" https://example.com/docs/ ", request_id="p-1")
        self.assertEqual(self.fetcher.fetch.call_args[0][0].url, "https://example.com/docs/")
        self.assertEqual(result.status_code, 404)
        self.assertEqual(body, '<img src="https://example.com/docs/logo.png">')

    def test_missing_url(self):
        for url in [None, "", "   "]:
            with self.subTest(url=url):
                with self.assertRaisesRegex(ValidationError, "URL parameter required"):
                    self.pipeline.relay_plain(url)
        self.fetcher.fetch.assert_not_called()

    def test_non_http_url_rejected_before_fetch(self):
        for url in ["ftp://example.com/f", "example.com", "http://"]:
            with self.subTest(url=url):
                with self.assertRaises(ValidationError):
                    self.pipeline.relay_plain(url)
        self.fetcher.fetch.assert_not_called()

    def test_fetch_error_propagates(self):
        self.fetcher.fetch.side_effect = DnsError("could not resolve host")
        with self.assertRaises(DnsError):
            self.pipeline.relay_plain("https://nowhere.invalid/")


if __name__ == "__main__":
    unittest.main()
