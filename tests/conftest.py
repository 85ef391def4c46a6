from __future__ import annotations

from typing import Any, Callable, Optional

import pytest

from scanrules.core.errors import TransportError
from scanrules.core.models import Transaction


class FakeHost:
    """Stands in for the engine: answers probes from a callback and records them."""

    def __init__(self, respond: Callable[[Transaction], Any], stop_after_send: bool = False) -> None:
        self.respond = respond
        self.sent: list[Transaction] = []
        self.follow: list[bool] = []
        self.stopped = False
        self.stop_after_send = stop_after_send

    def is_stopped(self) -> bool:
        return self.stopped

    def send(self, tx: Transaction, follow_redirects: bool = True) -> Transaction:
        self.sent.append(tx)
        self.follow.append(follow_redirects)
        if self.stop_after_send:
            self.stopped = True
        result = self.respond(tx)
        if isinstance(result, Exception):
            raise result
        status, headers, body = result
        return tx.with_response(status, headers=headers, body=body)


@pytest.fixture
def fake_host() -> Callable[..., FakeHost]:
    def make(respond: Any = None, *, stop_after_send: bool = False,
             status: int = 200, headers: Optional[list] = None, body: bytes = b"") -> FakeHost:
        if respond is None:
            def respond(_tx: Transaction) -> tuple:
                return status, headers or [], body
        return FakeHost(respond, stop_after_send=stop_after_send)

    return make


@pytest.fixture
def failing_host(fake_host: Callable[..., FakeHost]) -> FakeHost:
    return fake_host(lambda tx: TransportError(tx.uri, "connection refused"))


def response_tx(uri: str = "https://example.com/", status: int = 200,
                headers: Optional[list] = None, body: bytes = b"",
                request_headers: Optional[list] = None, method: str = "GET",
                request_body: bytes = b"") -> Transaction:
    return (Transaction.request(method, uri, headers=request_headers, body=request_body)
            .with_response(status, headers=headers, body=body))


@pytest.fixture
def make_tx() -> Callable[..., Transaction]:
    return response_tx
