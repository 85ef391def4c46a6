from typing import List, Tuple
from urllib.parse import urlsplit

from scanrules.core.errors import ParseError
from scanrules.core.models import Transaction


def _split_message(raw: bytes) -> Tuple[List[str], bytes]:
    """Header lines (CRLF or LF terminated) and the untouched body bytes."""
    for sep in (b"\r\n\r\n", b"\n\n"):
        head, found, body = raw.partition(sep)
        if found:
            break
    else:
        head, body = raw, b""
    text = head.decode("latin-1").replace("\r\n", "\n")
    lines = [l for l in text.split("\n") if l.strip()]
    if not lines:
        raise ParseError("message is empty")
    return lines, body


def _headers(lines: List[str]) -> List[Tuple[str, str]]:
    headers = []
    for line in lines:
        if ":" not in line:
            raise ParseError(f"invalid header line: {line!r}")
        k, v = line.split(":", 1)
        headers.append((k.strip(), v.strip()))
    return headers


class Request:
    def __init__(self, requestFilename: str, protocol: str = "https") -> None:
        """
        GET /app/page.php?x=1 HTTP/1.1
        Host: example.com
        Cookie: sid=abc

        data=xxx
        """
        self.requestFilename = requestFilename
        self.protocol = protocol

    def parse(self) -> Transaction:
        try:
            with open(self.requestFilename, "rb") as f:
                raw = f.read()
        except OSError as exc:
            raise ParseError(f"cannot read {self.requestFilename}: {exc.strerror}") from exc
        return parse_request(raw, self.protocol)


def parse_request(raw: bytes, protocol: str = "https") -> Transaction:
    lines, body = _split_message(raw)

    # METHOD SP TARGET [SP HTTP/x.y]
    parts0 = lines[0].split()
    if len(parts0) < 2:
        raise ParseError(f"invalid request line: {lines[0]!r}")
    method, target = parts0[0], parts0[1]
    version = parts0[2] if len(parts0) > 2 else "HTTP/1.1"
    if not version.upper().startswith("HTTP/"):
        raise ParseError(f"invalid HTTP version: {version!r}")

    headers = _headers(lines[1:])
    if urlsplit(target).scheme in ("http", "https"):
        uri = target
    else:
        host = next((v for k, v in headers if k.lower() == "host"), "")
        if not host:
            raise ParseError("Host header missing and request target is not absolute")
        uri = f"{protocol}://{host}{target if target.startswith('/') else '/' + target}"
    return Transaction.request(method, uri, headers=headers, body=body, version=version)


def parse_response(raw: bytes, request: Transaction) -> Transaction:
    """Attach a raw ``HTTP/x.y status reason`` message to ``request``."""
    lines, body = _split_message(raw)
    parts0 = lines[0].split(None, 2)
    if len(parts0) < 2 or not parts0[0].upper().startswith("HTTP/"):
        raise ParseError(f"invalid status line: {lines[0]!r}")
    try:
        status = int(parts0[1])
    except ValueError:
        raise ParseError(f"invalid status code: {parts0[1]!r}") from None
    reason = parts0[2] if len(parts0) > 2 else ""
    return request.with_response(status, headers=_headers(lines[1:]), body=body, reason=reason)


def load_response(filename: str, request: Transaction) -> Transaction:
    try:
        with open(filename, "rb") as f:
            raw = f.read()
    except OSError as exc:
        raise ParseError(f"cannot read {filename}: {exc.strerror}") from exc
    return parse_response(raw, request)
