"""Diagnostic traffic collector - redacted transcripts of authentication traffic.

Hosts and tokens are replaced with stable pseudonyms (``https://example{N}/``,
``sanitizedtoken{N}``) assigned in first-seen order. The registered username
and password always map to fixed fake values so a leak is easy to grep for.

All pseudonym state sits behind ``self._lock``; nothing may touch
``_host_map``/``_token_map`` or the counters without holding it.
"""

import json
import threading
from typing import Callable, Dict, List, Optional
from urllib.parse import urlsplit

from scanrules.core.models import Transaction, split_pairs, split_set_cookie

FAKE_USERNAME = "FakeUserName@example.com"
FAKE_PASSWORD = "F4keP4ssw0rd"

REQUEST_MARKER = ">>>>>"
RESPONSE_MARKER = "<<<"
JSON_FAILURE = "<<Failed to parse JSON>>"

# background traffic browsers send on their own
_IGNORED_HOSTS = frozenset({
    "detectportal.firefox.com",
    "push.services.mozilla.com",
    "content-signature-2.cdn.mozilla.net",
    "firefox.settings.services.mozilla.com",
    "incoming.telemetry.mozilla.org",
    "safebrowsing.googleapis.com",
    "clients2.google.com",
    "update.googleapis.com",
    "optimizationguide-pa.googleapis.com",
})

_STATIC_EXTENSIONS = (".css", ".js", ".png", ".jpg", ".jpeg", ".gif", ".svg", ".ico",
                      ".woff", ".woff2", ".ttf", ".eot", ".webp", ".map")


def is_relevant(tx: Transaction) -> bool:
    """Whether a transaction may be part of an authentication flow."""
    parts = urlsplit(tx.uri)
    if parts.scheme.lower() not in ("http", "https"):
        return False
    if (parts.hostname or "").lower() in _IGNORED_HOSTS:
        return False
    if parts.path.lower().endswith(_STATIC_EXTENSIONS):
        return False
    content_type = (tx.content_type() or "").lower()
    return not content_type.startswith(("image/", "font/", "text/css")) \
        and "javascript" not in content_type


class DiagnosticCollector:
    """Listener called once per proxied response; emits one block per relevant one."""

    def __init__(self, sink: Optional[Callable[[str], None]] = None, logger=None):
        self.sink = sink
        self.logger = logger
        self._enabled = False
        self._username: Optional[str] = None
        self._password: Optional[str] = None
        self._lock = threading.Lock()
        self._host_map: Dict[str, str] = {}
        self._host_id = 0
        self._token_map: Dict[str, str] = {}
        self._token_id = 0

    # ── state ───────────────────────────────────────────────────

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool):
        with self._lock:
            self._enabled = enabled
            if not enabled:
                self._username = None
                self._password = None
                self._clear()

    def set_credentials(self, username: Optional[str], password: Optional[str]):
        with self._lock:
            self._username = username
            self._password = password

    def reset(self):
        with self._lock:
            self._clear()

    def _clear(self):
        self._host_map.clear()
        self._token_map.clear()
        self._host_id = 0
        self._token_id = 0

    # ── pseudonyms ──────────────────────────────────────────────

    def sanitize_host(self, host: str) -> str:
        with self._lock:
            if host not in self._host_map:
                self._host_map[host] = f"https://example{self._host_id}/"
                self._host_id += 1
            return self._host_map[host]

    def sanitize_token(self, token: str) -> str:
        with self._lock:
            if self._username is not None and token == self._username:
                return FAKE_USERNAME
            if self._password is not None and token == self._password:
                return FAKE_PASSWORD
            if token not in self._token_map:
                self._token_map[token] = f"sanitizedtoken{self._token_id}"
                self._token_id += 1
            return self._token_map[token]

    def sanitize_json(self, value):
        """Redact every string leaf; numbers, booleans and null pass through."""
        if isinstance(value, dict):
            return {k: self.sanitize_json(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self.sanitize_json(v) for v in value]
        if isinstance(value, str):
            return self.sanitize_token(value)
        return value

    # ── transcript ──────────────────────────────────────────────

    def on_response(self, tx: Transaction):
        if not self._enabled or self.sink is None:
            return
        if not is_relevant(tx):
            if self.logger:
                self.logger.debug(f"Diagnostics skipped {tx.uri}")
            return
        # built in one go so concurrent transcripts never interleave
        self._log(self.render(tx))

    def render(self, tx: Transaction) -> str:
        lines: List[str] = [REQUEST_MARKER, self._request_line(tx)]
        self._exact_headers(tx.request_headers, "Content-Type", lines)
        self._authorization(tx.request_headers, lines)
        for name, value in tx.request_cookies():
            lines.append(f"Cookie: {name}={self.sanitize_token(value)}")
        self._body(tx, True, lines)

        lines.append(RESPONSE_MARKER)
        lines.append(f"{tx.version} {tx.status} {tx.reason}".rstrip())
        self._exact_headers(tx.response_headers, "Content-Type", lines)
        self._authorization(tx.response_headers, lines)
        for header in tx.response_headers.get_list("set-cookie"):
            lines.append(f"Set-Cookie: {self._set_cookie(header)}")
        self._body(tx, False, lines)
        return "\n".join(lines) + "\n"

    def _log(self, text: str):
        if not self._enabled:
            return
        self.sink(text)

    def _request_line(self, tx: Transaction) -> str:
        parts = urlsplit(tx.uri)
        host = self.sanitize_host(f"{parts.scheme}://{parts.netloc}".lower())
        name = parts.path.rpartition("/")[2] or parts.path.lstrip("/")
        return f"{tx.method} {host}{name}"

    @staticmethod
    def _exact_headers(headers, name: str, lines: List[str]):
        for value in headers.get_list(name):
            lines.append(f"{name}: {value}")

    def _authorization(self, headers, lines: List[str]):
        for value in headers.get_list("authorization"):
            if value.lower().startswith("bearer"):
                offset = value.find(" ")
                if offset == -1:
                    offset = value.find(":")
                if offset == -1:
                    value = self.sanitize_token(value)
                else:
                    value = f"{value[:offset]} {self.sanitize_token(value[offset + 1:])}"
            else:
                value = self.sanitize_token(value)
            lines.append(f"Authorization: {value}")

    def _set_cookie(self, header: str) -> str:
        name, value, attrs = split_set_cookie(header)
        rendered = f"{name}={self.sanitize_token(value)}"
        domain = attrs.get("domain", "").strip()
        if domain:
            rendered += f"; Domain={self.sanitize_host(domain.lstrip('.').lower())}"
        return rendered

    def _body(self, tx: Transaction, is_request: bool, lines: List[str]):
        content_type = (tx.content_type(response=not is_request) or "").lower()
        if "json" in content_type:
            text = tx.request_text() if is_request else tx.response_text()
            try:
                data = json.loads(text)
            except ValueError:
                lines.extend(["", JSON_FAILURE])
                return
            if not isinstance(data, (dict, list)):
                lines.extend(["", JSON_FAILURE])
                return
            lines.extend(["", json.dumps(self.sanitize_json(data))])
        elif is_request and tx.method == "POST":
            params = split_pairs(tx.request_text(), "&")
            if params:
                lines.append("")
                lines.append("&".join(f"{n}={self.sanitize_token(v)}" for n, v in params))
