from __future__ import annotations

import dataclasses

import pytest

from scanrules.core.errors import ConfigError
from scanrules.core.models import (
    ALL_TECH, AlertThreshold, AttackStrength, Category, Confidence,
    DetectorMetadata, Risk, Tech, Transaction, split_set_cookie,
)


def _meta(**overrides) -> DetectorMetadata:
    fields = dict(rule_id=1, name="Test Rule", category=Category.MISC,
                  risk=Risk.LOW, confidence=Confidence.MEDIUM,
                  description="desc", solution="fix", references="ref",
                  cwe_id=79, wasc_id=8, tags={"PENTEST": ""})
    fields.update(overrides)
    return DetectorMetadata(**fields)


def test_levels_are_ordered() -> None:
    assert Risk.INFO < Risk.LOW < Risk.MEDIUM < Risk.HIGH
    assert AlertThreshold.OFF < AlertThreshold.LOW
    assert AttackStrength.INSANE > AttackStrength.HIGH
    assert Confidence.CONFIRMED.label == "Confirmed"


@pytest.mark.parametrize("raw,expected", [
    ("high", AttackStrength.HIGH),
    (" Insane ", AttackStrength.INSANE),
    (AttackStrength.LOW, AttackStrength.LOW),
])
def test_level_parse(raw, expected) -> None:
    assert AttackStrength.parse(raw) is expected


def test_level_parse_rejects_unknown_names() -> None:
    with pytest.raises(ConfigError, match="expected one of"):
        AlertThreshold.parse("extreme")


def test_tech_parse_accepts_names_and_labels() -> None:
    assert Tech.parse("php") is Tech.PHP
    assert Tech.parse("JSP/Servlet") is Tech.JSP_SERVLET
    assert Tech.PHP in ALL_TECH
    with pytest.raises(ConfigError):
        Tech.parse("cobol")


def test_builder_starts_from_metadata() -> None:
    alert = (_meta().new_alert()
             .set_evidence("ev")
             .set_attack("atk")
             .set_uri("https://example.com/")
             .build())
    assert alert.rule_id == 1
    assert alert.risk is Risk.LOW
    assert alert.confidence is Confidence.MEDIUM
    assert (alert.description, alert.solution, alert.references) == ("desc", "fix", "ref")
    assert (alert.cwe_id, alert.wasc_id) == (79, 8)
    assert alert.evidence == "ev"
    assert alert.attack == "atk"
    assert dict(alert.tags) == {"PENTEST": ""}


def test_builder_overrides_do_not_leak_between_alerts() -> None:
    meta = _meta()
    first = meta.new_alert().set_risk(Risk.HIGH).build()
    second = meta.new_alert().build()
    assert first.risk is Risk.HIGH
    assert second.risk is Risk.LOW


def test_alert_and_metadata_are_immutable() -> None:
    meta = _meta()
    alert = meta.new_alert().build()
    with pytest.raises(dataclasses.FrozenInstanceError):
        alert.evidence = "changed"  # type: ignore[misc]
    with pytest.raises(TypeError):
        meta.tags["NEW"] = "x"  # type: ignore[index]


def test_alert_to_dict_uses_labels() -> None:
    data = _meta().new_alert().set_uri("https://example.com/x").build().to_dict()
    assert data["risk"] == "Low"
    assert data["confidence"] == "Medium"
    assert data["uri"] == "https://example.com/x"
    assert data["tags"] == {"PENTEST": ""}


def test_header_blocks_keep_order_and_case() -> None:
    tx = Transaction.request("get", "https://example.com/a?b=1",
                             headers=[("Host", "example.com"), ("X-One", "1")])
    tx = tx.with_response(200, headers=[("Content-Type", "text/html"), ("X-Two", "2")])
    assert tx.method == "GET"
    assert tx.request_header_block() == (
        "GET https://example.com/a?b=1 HTTP/1.1\r\nHost: example.com\r\nX-One: 1\r\n\r\n")
    assert tx.response_header_block() == (
        "HTTP/1.1 200 OK\r\nContent-Type: text/html\r\nX-Two: 2\r\n\r\n")


def test_structured_views_are_raw() -> None:
    tx = Transaction.request(
        "GET", "https://example.com/?q=a%20b&flag&x=1",
        headers=[("Cookie", "sid=abc; theme=dark"), ("Cookie", "extra=1")],
    ).with_response(200, headers=[("Set-Cookie", "token=xyz; Path=/; HttpOnly")])
    assert tx.query_params() == [("q", "a%20b"), ("flag", ""), ("x", "1")]
    assert tx.request_cookies() == [("sid", "abc"), ("theme", "dark"), ("extra", "1")]
    assert tx.response_cookies() == [("token", "xyz")]


def test_split_set_cookie_lowercases_attributes() -> None:
    name, value, attrs = split_set_cookie("id=42; Domain=.example.com; Secure")
    assert (name, value) == ("id", "42")
    assert attrs == {"domain": ".example.com", "secure": ""}


def test_response_text_honours_charset() -> None:
    tx = Transaction.request("GET", "https://example.com/").with_response(
        200, headers=[("Content-Type", "text/html; charset=ISO-8859-1")], body=b"caf\xe9")
    assert tx.response_text() == "café"


def test_unknown_charset_falls_back_to_utf8() -> None:
    tx = Transaction.request("GET", "https://example.com/").with_response(
        200, headers=[("Content-Type", "text/html; charset=bogus")], body="ok ✓".encode())
    assert tx.response_text() == "ok ✓"


def test_has_response() -> None:
    tx = Transaction.request("GET", "https://example.com/")
    assert not tx.has_response
    assert tx.with_response(404).has_response
    assert tx.with_response(404).reason == "Not Found"


def test_header_values_outside_ascii() -> None:
    tx = Transaction.request("GET", "https://example.com/",
                             headers={"X-Price": "5 €", "X-Id": "ok"})
    assert tx.request_headers["x-price"] == "5 €"
    tx = tx.with_response(200, headers=[("X-Name", "café")])
    assert tx.response_headers["x-name"] == "café"
    assert tx.response_header_block() == "HTTP/1.1 200 OK\r\nX-Name: café\r\n\r\n"
    assert tx.with_response(200, headers=tx.response_headers).response_headers.raw == [
        (b"X-Name", b"caf\xe9")]
