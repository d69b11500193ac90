"""Compact, URL-safe encoding of a TestResult.

Layout (big-endian):

    8 x uint16   boundary hues in tenths of a degree (0-3599)
    uint8        mode (0 = normal, 1 = refine)
    uint8        locale index (unknown values decode as English)
    uint8        nickname length in UTF-8 bytes (0 = no nickname)
    n bytes      nickname

The buffer is Base64 with ``-``/``_`` substitutions and no ``=`` padding.
"""

from __future__ import annotations

import base64
import binascii
import logging
import struct
import time
from urllib.parse import parse_qs, urlsplit

from .hue_math import normalize_hue
from .palette import TRANSITIONS
from .results import Locale, TestMode, TestResult

log = logging.getLogger(__name__)

HUE_COUNT = len(TRANSITIONS)
MAX_HUE_WORD = 3599
MAX_NICKNAME_BYTES = 255
LOCALE_CODES: tuple[Locale, ...] = (Locale.EN, Locale.KO, Locale.JA)
MODE_CODES: tuple[TestMode, ...] = (TestMode.NORMAL, TestMode.REFINE)

_HEADER = struct.Struct(f">{HUE_COUNT}HBBB")
HEADER_SIZE = _HEADER.size

DEFAULT_BASE_URL = "http://localhost:8000/"
RESULT_PARAM = "r"


def encode_result(result: TestResult) -> str:
    if len(result.boundaries) != HUE_COUNT:
        raise ValueError(f"expected {HUE_COUNT} boundaries, got {len(result.boundaries)}")

    words = [int(round(normalize_hue(h) * 10.0)) % 3600 for h in result.boundaries]
    nickname = _nickname_bytes(result.nickname)
    payload = _HEADER.pack(
        *words,
        MODE_CODES.index(TestMode(result.mode)),
        LOCALE_CODES.index(Locale.coerce(result.locale)),
        len(nickname),
    )
    return base64.urlsafe_b64encode(payload + nickname).rstrip(b"=").decode("ascii")


def decode_result(token: object, *, now: float | None = None) -> TestResult | None:
    """Decode a share token; ``None`` for anything malformed. Never raises."""

    if not isinstance(token, str) or not token.strip():
        return None

    try:
        raw = _b64url_decode(token.strip())
    except (binascii.Error, ValueError):
        log.debug("rejecting share token: not base64")
        return None

    if len(raw) < HEADER_SIZE:
        log.debug("rejecting share token: %d bytes, need %d", len(raw), HEADER_SIZE)
        return None

    fields = _HEADER.unpack_from(raw)
    words = fields[:HUE_COUNT]
    mode_code, locale_code, nickname_len = fields[HUE_COUNT:]

    if any(w > MAX_HUE_WORD for w in words):
        log.debug("rejecting share token: hue out of range")
        return None
    if mode_code >= len(MODE_CODES):
        log.debug("rejecting share token: mode byte %d", mode_code)
        return None

    end = HEADER_SIZE + nickname_len
    if end > len(raw):
        log.debug("rejecting share token: nickname overruns buffer")
        return None

    nickname: str | None = None
    if nickname_len:
        try:
            nickname = raw[HEADER_SIZE:end].decode("utf-8")
        except UnicodeDecodeError:
            log.debug("rejecting share token: nickname is not UTF-8")
            return None

    locale = LOCALE_CODES[locale_code] if locale_code < len(LOCALE_CODES) else Locale.EN

    return TestResult(
        boundaries=tuple(w / 10.0 for w in words),
        mode=MODE_CODES[mode_code],
        timestamp=time.time() if now is None else float(now),
        locale=locale,
        nickname=nickname,
    )


def build_share_url(result: TestResult, base_url: str = DEFAULT_BASE_URL) -> str:
    base = base_url.split("#", 1)[0]
    return f"{base}#/results?{RESULT_PARAM}={encode_result(result)}"


def token_from_url(url: str) -> str | None:
    """The ``r`` parameter from the fragment query, else from the query string."""

    try:
        parts = urlsplit(url)
    except ValueError:
        return None

    candidates = []
    if "?" in parts.fragment:
        candidates.append(parts.fragment.split("?", 1)[1])
    candidates.append(parts.query)

    for query in candidates:
        values = parse_qs(query).get(RESULT_PARAM)
        if values and values[0]:
            return values[0]
    return None


def read_result_from_url(url: str, *, now: float | None = None) -> TestResult | None:
    token = token_from_url(url)
    if token is None:
        return None
    return decode_result(token, now=now)


def _b64url_decode(token: str) -> bytes:
    padded = token + "=" * (-len(token) % 4)
    return base64.b64decode(padded, altchars=b"-_", validate=True)


def _nickname_bytes(nickname: str | None) -> bytes:
    if nickname is None:
        return b""
    data = nickname.strip().encode("utf-8")
    if len(data) > MAX_NICKNAME_BYTES:
        # Drop the partial character left at the cut.
        data = data[:MAX_NICKNAME_BYTES].decode("utf-8", errors="ignore").encode("utf-8")
    return data
