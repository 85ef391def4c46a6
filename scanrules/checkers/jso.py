"""Java serialized objects (JSO) travelling in requests or responses."""

import base64
import binascii
import re
from typing import Iterator, List, Optional, Tuple, Union
from urllib.parse import unquote_to_bytes

from scanrules.checkers.base import PassiveRule
from scanrules.core import tags
from scanrules.core.models import (
    Alert, Category, Confidence, DetectorMetadata, Risk, Transaction,
)

# stream magic AC ED followed by stream version 00 05
JSO_MAGIC = b"\xac\xed\x00\x05"

_WHITESPACE = re.compile(r"\s+")

Candidate = Union[str, bytes]


# ── Decoders. Every failure is a plain non-match. ──────────────

def _as_bytes(candidate: Candidate) -> Optional[bytes]:
    if isinstance(candidate, bytes):
        return candidate
    try:
        return candidate.encode("latin-1")
    except UnicodeEncodeError:
        return None


def _b64_decode(candidate: Candidate) -> Optional[bytes]:
    if isinstance(candidate, bytes):
        try:
            candidate = candidate.decode("ascii")
        except UnicodeDecodeError:
            return None
    text = _WHITESPACE.sub("", candidate)
    if not text:
        return None
    text += "=" * (-len(text) % 4)
    altchars = b"-_" if ("-" in text or "_" in text) else None
    try:
        return base64.b64decode(text, altchars=altchars)
    except (binascii.Error, ValueError):
        return None


def _url_decode(candidate: Candidate) -> Iterator[bytes]:
    if isinstance(candidate, bytes):
        try:
            candidate = candidate.decode("ascii")
        except UnicodeDecodeError:
            return
    if "%" not in candidate:
        return
    raw = unquote_to_bytes(candidate.replace("+", " "))
    yield raw
    # bytes that were read as ISO-8859-1 text before being UTF-8 percent-encoded
    try:
        yield raw.decode("utf-8").encode("latin-1")
    except (UnicodeDecodeError, UnicodeEncodeError):
        return


def match_encoding(candidate: Candidate) -> Optional[str]:
    """Return "raw", "base64" or "url" for the first encoding that carries a JSO."""
    raw = _as_bytes(candidate)
    if raw is not None and raw.startswith(JSO_MAGIC):
        return "raw"
    decoded = _b64_decode(candidate)
    if decoded is not None and decoded.startswith(JSO_MAGIC):
        return "base64"
    for decoded in _url_decode(candidate):
        if decoded.startswith(JSO_MAGIC):
            return "url"
    return None


class JavaSerializedObject(PassiveRule):
    """
    Looks for the Java serialization magic bytes in headers, cookies, URL
    parameters and bodies, raw, base64 or URL-encoded. One alert per message:
    the first channel that matches wins.
    """

    meta = DetectorMetadata(
        rule_id=90002,
        name="Java Serialization Object",
        category=Category.MISC,
        risk=Risk.MEDIUM,
        confidence=Confidence.HIGH,
        description=(
            "Java Serialization seems to be in use. If not correctly validated, an "
            "attacker can send a specially crafted object. This can lead to a "
            "dangerous \"Remote Code Execution\". A magic sequence identifying JSO "
            "has been detected."),
        solution=(
            "Deserialization of untrusted data is inherently dangerous and should be "
            "avoided."),
        references=(
            "https://www.oracle.com/java/technologies/javase/seccodeguide.html#8"),
        cwe_id=502,   # Deserialization of Untrusted Data
        wasc_id=20,   # Improper Input Handling
        tags=tags.build_tags(tags.OWASP_2021_A04_INSECURE_DESIGN,
                             tags.OWASP_2017_A08_INSECURE_DESERIAL,
                             policies=(tags.PENTEST,)),
    )

    def inspect_request(self, tx: Transaction) -> List[Alert]:
        channels = [
            ("header", self._headers(tx.request_headers)),
            ("cookie", ((n, v) for n, v in tx.request_cookies())),
            ("URL parameter", ((n, v) for n, v in tx.query_params())),
            ("body", self._body(tx.request_body)),
        ]
        return self._scan(tx, channels)

    def inspect_response(self, tx: Transaction) -> List[Alert]:
        channels = [
            ("header", self._headers(tx.response_headers)),
            ("cookie", ((n, v) for n, v in tx.response_cookies())),
            ("body", self._body(tx.response_body)),
        ]
        return self._scan(tx, channels)

    def _scan(self, tx: Transaction, channels) -> List[Alert]:
        for channel, candidates in channels:
            for name, candidate in candidates:
                encoding = match_encoding(candidate)
                if encoding is None:
                    continue
                self.debug(f"JSO ({encoding}) found in {channel} {name!r} of {tx.uri}")
                evidence = candidate if isinstance(candidate, str) else ""
                alert = (self.new_alert()
                         .set_evidence(evidence)
                         .set_other_info(f"Found {encoding} encoded JSO in {channel}: {name}")
                         .set_uri(tx.uri)
                         .build())
                return [alert]
        return []

    @staticmethod
    def _headers(headers) -> Iterator[Tuple[str, str]]:
        enc = headers.encoding
        for name, value in headers.raw:
            yield name.decode(enc), value.decode(enc)

    @staticmethod
    def _body(body: bytes) -> Iterator[Tuple[str, Candidate]]:
        if not body:
            return
        if body.startswith(JSO_MAGIC):
            yield "raw", body
            return
        try:
            text = body.decode("ascii").strip()
        except UnicodeDecodeError:
            return
        if text:
            yield "text", text

    def example_alerts(self) -> List[Alert]:
        return [self.new_alert().set_evidence("rO0ABXNyAA").build()]
