"""Shared data models for the scan rules: transactions, alerts and rule metadata."""

import re
from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple
from urllib.parse import urlsplit

import httpx

from scanrules.core.errors import ConfigError

_CHARSET_RX = re.compile(r"charset\s*=\s*[\"']?([\w.:-]+)", re.I)


# ── Ordered levels ─────────────────────────────────────────────

class _Level(IntEnum):
    """IntEnum with a display label and lenient name parsing."""

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @classmethod
    def parse(cls, value) -> "_Level":
        if isinstance(value, cls):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            names = ", ".join(m.name.lower() for m in cls)
            raise ConfigError(
                f"invalid {cls.__name__} {value!r} (expected one of: {names})") from None


class Risk(_Level):
    INFO = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3


class Confidence(_Level):
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CONFIRMED = 4


class AttackStrength(_Level):
    """How many probe variants an active rule may try."""
    LOW = 0
    MEDIUM = 1
    HIGH = 2
    INSANE = 3


class AlertThreshold(_Level):
    """How much evidence a rule needs before alerting. OFF disables the rule."""
    OFF = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3


class Category(Enum):
    INFO_GATHER = "Information Gathering"
    BROWSER = "Client Browser"
    SERVER = "Server Security"
    INJECTION = "Injection"
    MISC = "Miscellaneous"


class Tech(Enum):
    DB = "Db"
    MYSQL = "MySQL"
    POSTGRESQL = "PostgreSQL"
    MSSQL = "MsSQL"
    PHP = "PHP"
    ASP = "ASP"
    JSP_SERVLET = "JSP/Servlet"
    PYTHON = "Python"
    RUBY = "Ruby"
    JAVASCRIPT = "JavaScript"
    LINUX = "Linux"
    WINDOWS = "Windows"
    APACHE = "Apache"
    IIS = "IIS"
    TOMCAT = "Tomcat"
    NGINX = "Nginx"

    @classmethod
    def parse(cls, value) -> "Tech":
        if isinstance(value, cls):
            return value
        wanted = str(value).strip().lower()
        for tech in cls:
            if wanted in (tech.name.lower(), tech.value.lower()):
                return tech
        raise ConfigError(f"unknown technology {value!r}")


ALL_TECH: FrozenSet[Tech] = frozenset(Tech)


# ── Transactions ───────────────────────────────────────────────

def _decode(body: bytes, content_type: Optional[str]) -> str:
    charset = "utf-8"
    if content_type:
        m = _CHARSET_RX.search(content_type)
        if m:
            charset = m.group(1)
    try:
        return body.decode(charset, errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


def _header_bytes(headers) -> httpx.Headers:
    """Headers from pairs, str values stored as their Latin-1 bytes.

    httpx encodes str values as ASCII; bytes keep any octet and the
    encoding is inferred again when the values are read back.
    """
    if isinstance(headers, httpx.Headers):
        return httpx.Headers(headers.raw)
    if isinstance(headers, Mapping):
        headers = headers.items()
    return httpx.Headers([(_octets(k), _octets(v)) for k, v in headers or []])


def _octets(value) -> bytes:
    if isinstance(value, bytes):
        return value
    try:
        return value.encode("latin-1")
    except UnicodeEncodeError:
        return value.encode("utf-8")


def _render_headers(headers: httpx.Headers) -> str:
    enc = headers.encoding
    return "".join(
        f"{name.decode(enc)}: {value.decode(enc)}\r\n" for name, value in headers.raw)


def split_pairs(raw: str, sep: str) -> List[Tuple[str, str]]:
    """Split ``a=1<sep>b=2`` into raw (undecoded) name/value pairs."""
    pairs = []
    for chunk in raw.split(sep):
        chunk = chunk.strip()
        if not chunk:
            continue
        name, _, value = chunk.partition("=")
        pairs.append((name.strip(), value.strip()))
    return pairs


def split_set_cookie(header_value: str) -> Tuple[str, str, Dict[str, str]]:
    """Return (name, value, attributes) for one Set-Cookie header value.

    Attribute names are lower-cased; flag attributes map to "".
    """
    first, _, rest = header_value.partition(";")
    name, _, value = first.partition("=")
    attrs = {k.lower(): v for k, v in split_pairs(rest, ";")}
    return name.strip(), value.strip(), attrs


@dataclass(frozen=True)
class Transaction:
    """An HTTP request and (once sent) its response.

    Rules only read transactions. Active rules build new ones with
    ``Transaction.request`` and receive the answered copy from the host.
    """
    method: str
    uri: str
    request_headers: httpx.Headers = field(default_factory=httpx.Headers)
    request_body: bytes = b""
    status: int = 0
    reason: str = ""
    response_headers: httpx.Headers = field(default_factory=httpx.Headers)
    response_body: bytes = b""
    version: str = "HTTP/1.1"

    @classmethod
    def request(cls, method: str, uri: str, headers=None, body: bytes = b"",
                version: str = "HTTP/1.1") -> "Transaction":
        return cls(method=method.upper(), uri=uri,
                   request_headers=_header_bytes(headers),
                   request_body=body, version=version)

    def with_response(self, status: int, headers=None, body: bytes = b"",
                      reason: str = "") -> "Transaction":
        if not reason:
            reason = httpx.codes.get_reason_phrase(status)
        return replace(self, status=status, reason=reason,
                       response_headers=_header_bytes(headers),
                       response_body=body)

    @property
    def has_response(self) -> bool:
        return self.status > 0

    # ── raw renderings ──────────────────────────────────────────

    def request_header_block(self) -> str:
        return (f"{self.method} {self.uri} {self.version}\r\n"
                f"{_render_headers(self.request_headers)}\r\n")

    def response_header_block(self) -> str:
        status_line = f"{self.version} {self.status} {self.reason}".rstrip()
        return f"{status_line}\r\n{_render_headers(self.response_headers)}\r\n"

    def content_type(self, response: bool = True) -> Optional[str]:
        headers = self.response_headers if response else self.request_headers
        return headers.get("content-type")

    def request_text(self) -> str:
        return _decode(self.request_body, self.content_type(response=False))

    def response_text(self) -> str:
        return _decode(self.response_body, self.content_type())

    # ── structured views (raw values, nothing decoded) ──────────

    def request_cookies(self) -> List[Tuple[str, str]]:
        cookies = []
        for value in self.request_headers.get_list("cookie"):
            cookies.extend(split_pairs(value, ";"))
        return cookies

    def response_cookies(self) -> List[Tuple[str, str]]:
        return [split_set_cookie(v)[:2]
                for v in self.response_headers.get_list("set-cookie")]

    def query_params(self) -> List[Tuple[str, str]]:
        return split_pairs(urlsplit(self.uri).query, "&")


# ── Alerts ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class Alert:
    """A single finding. Never mutated once raised."""
    rule_id: int
    name: str
    risk: Risk
    confidence: Confidence
    description: str = ""
    solution: str = ""
    references: str = ""
    evidence: str = ""     # literal substring of the inspected header block or body
    other_info: str = ""
    attack: str = ""       # payload / mutated URL used by an active rule
    uri: str = ""
    cwe_id: int = 0
    wasc_id: int = 0
    tags: Mapping[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "name": self.name,
            "risk": self.risk.label,
            "confidence": self.confidence.label,
            "description": self.description,
            "solution": self.solution,
            "references": self.references,
            "evidence": self.evidence,
            "other_info": self.other_info,
            "attack": self.attack,
            "uri": self.uri,
            "cwe_id": self.cwe_id,
            "wasc_id": self.wasc_id,
            "tags": dict(self.tags),
        }

    def __str__(self):
        return (f"[{self.risk.label.upper()}][{self.confidence.label}] "
                f"{self.name} ({self.rule_id}) @ {self.uri}")


class AlertBuilder:
    """Fluent builder pre-filled from a rule's metadata."""

    def __init__(self, meta: "DetectorMetadata"):
        self._fields = {
            "rule_id": meta.rule_id,
            "name": meta.name,
            "risk": meta.risk,
            "confidence": meta.confidence,
            "description": meta.description,
            "solution": meta.solution,
            "references": meta.references,
            "cwe_id": meta.cwe_id,
            "wasc_id": meta.wasc_id,
            "tags": meta.tags,
        }

    def _set(self, key: str, value) -> "AlertBuilder":
        self._fields[key] = value
        return self

    def set_risk(self, risk: Risk) -> "AlertBuilder":
        return self._set("risk", risk)

    def set_confidence(self, confidence: Confidence) -> "AlertBuilder":
        return self._set("confidence", confidence)

    def set_description(self, text: str) -> "AlertBuilder":
        return self._set("description", text)

    def set_solution(self, text: str) -> "AlertBuilder":
        return self._set("solution", text)

    def set_references(self, text: str) -> "AlertBuilder":
        return self._set("references", text)

    def set_evidence(self, evidence: str) -> "AlertBuilder":
        return self._set("evidence", evidence or "")

    def set_other_info(self, text: str) -> "AlertBuilder":
        return self._set("other_info", text or "")

    def set_attack(self, attack: str) -> "AlertBuilder":
        return self._set("attack", attack or "")

    def set_uri(self, uri: str) -> "AlertBuilder":
        return self._set("uri", uri)

    def build(self) -> Alert:
        return Alert(**self._fields)


@dataclass(frozen=True)
class DetectorMetadata:
    """Static descriptor of a rule, built once at registration."""
    rule_id: int
    name: str
    category: Category
    risk: Risk
    confidence: Confidence
    description: str = ""
    solution: str = ""
    references: str = ""
    cwe_id: int = 0
    wasc_id: int = 0
    tags: Mapping[str, str] = field(default_factory=dict)
    technologies: Optional[FrozenSet[Tech]] = None   # None → every technology

    def __post_init__(self):
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))
        if self.technologies is not None:
            object.__setattr__(self, "technologies", frozenset(self.technologies))

    def new_alert(self) -> AlertBuilder:
        return AlertBuilder(self)
