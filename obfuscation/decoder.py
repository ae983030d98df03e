"""
Reversible obfuscation of target URLs exchanged with the browser client.

This is NOT encryption. The shared key and the transform ship inside the
client bundle, so anyone who can read that code can decode every payload.
It only keeps target URLs from being readable at a glance in network logs.

Modes:
- shift:  base64 -> per-character key shift -> reverse -> base64 (default)
- base64: plain base64
- aes:    plain base64; the client already removed its cipher layer
- xor:    reversed base64; the client already removed its XOR layer
"""

import base64
import binascii
import re
from abc import ABC, abstractmethod
from typing import Dict, Optional
from urllib.parse import urlsplit

from relay.errors import DecodeError, ValidationError
from relay.models import TargetDescriptor

DEFAULT_MODE = "shift"

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/_-]+$")


def b64decode_text(data, encoding="utf-8") -> str:
    """
    Lenient base64 decode: strips whitespace, restores padding and accepts
    the URL-safe alphabet. Anything else raises DecodeError.
    """
    if not isinstance(data, str):
        raise DecodeError("payload must be a string")
    data = data.strip().rstrip("=")
    if not data:
        raise DecodeError("empty payload")
    if not _BASE64_RE.match(data) or len(data) % 4 == 1:
        raise DecodeError("payload is not valid base64")

    data = data.replace("-", "+").replace("_", "/")
    data += "=" * (-len(data) % 4)
    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"payload is not valid base64: {e}") from e

    try:
        return raw.decode(encoding)
    except UnicodeDecodeError as e:
        raise DecodeError(f"decoded payload is not {encoding} text") from e


def b64encode_text(text, encoding="utf-8") -> str:
    return base64.b64encode(text.encode(encoding)).decode("ascii")


def parse_target(text) -> TargetDescriptor:
    """Accept only absolute http/https URLs with a host."""
    if not isinstance(text, str) or not text.strip():
        raise DecodeError("decoded payload is empty")
    url = text.strip()
    if any(c.isspace() or ord(c) < 32 for c in url):
        raise DecodeError("decoded payload is not a URL")

    try:
        parts = urlsplit(url)
        parts.port  # raises ValueError on a bad port
    except ValueError as e:
        raise DecodeError(f"decoded payload is not a URL: {e}") from e

    if parts.scheme.lower() not in ("http", "https"):
        raise DecodeError("decoded URL must use http or https")
    if not parts.hostname:
        raise DecodeError("decoded URL has no host")
    return TargetDescriptor(url=url)


class DecodingMode(ABC):
    """One reversible transport transform between a URL and its payload."""

    @abstractmethod
    def decode_text(self, payload: str) -> str:
        pass

    @abstractmethod
    def encode_text(self, url: str) -> str:
        pass


class ShiftMode(DecodingMode):
    """Key-shift cipher sandwiched between two base64 layers."""

    def __init__(self, key: str):
        if not key:
            raise ValueError("shift mode needs a non-empty key")
        self._offsets = [ord(c) % 10 for c in key]

    def _offset(self, i):
        return self._offsets[i % len(self._offsets)]

    def decode_text(self, payload):
        # latin-1 keeps code points 0-255 one-to-one, like the browser's atob
        shifted = b64decode_text(payload, encoding="latin-1")
        try:
            unshifted = "".join(chr(ord(c) - self._offset(i)) for i, c in enumerate(shifted))
        except ValueError as e:
            raise DecodeError("payload does not match the shared key") from e
        return b64decode_text(unshifted[::-1])

    def encode_text(self, url):
        inner = b64encode_text(url)[::-1]
        shifted = "".join(chr(ord(c) + self._offset(i)) for i, c in enumerate(inner))
        return b64encode_text(shifted, encoding="latin-1")


class Base64Mode(DecodingMode):

    def decode_text(self, payload):
        return b64decode_text(payload)

    def encode_text(self, url):
        return b64encode_text(url)


class ReversedBase64Mode(DecodingMode):

    def decode_text(self, payload):
        if not isinstance(payload, str):
            raise DecodeError("payload must be a string")
        return b64decode_text(payload.strip()[::-1])

    def encode_text(self, url):
        return b64encode_text(url)[::-1]


class PayloadDecoder:
    """
    Turns an EncodedPayload back into a TargetDescriptor.
    Stateless once built; safe to share between request threads.
    """

    def __init__(self, key: str):
        self._modes: Dict[str, DecodingMode] = {
            "shift": ShiftMode(key),
            "base64": Base64Mode(),
            "aes": Base64Mode(),
            "xor": ReversedBase64Mode(),
        }

    @property
    def modes(self):
        return sorted(self._modes)

    def _mode(self, mode: Optional[str]) -> DecodingMode:
        if mode is not None and not isinstance(mode, str):
            raise ValidationError("mode must be a string")
        name = (mode or DEFAULT_MODE).strip().lower()
        if name not in self._modes:
            raise ValidationError(f"unsupported mode: {mode[:20]}")
        return self._modes[name]

    def decode(self, payload, mode: Optional[str] = None) -> TargetDescriptor:
        strategy = self._mode(mode)
        if not isinstance(payload, str) or not payload.strip():
            raise DecodeError("payload must be a non-empty string")
        return parse_target(strategy.decode_text(payload))

    def encode(self, url: str, mode: Optional[str] = None) -> str:
        """Client-side transform; used by tests and tooling."""
        return self._mode(mode).encode_text(url)
