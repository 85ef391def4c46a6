from __future__ import annotations

import html

import pytest

from scanrules.checkers.source_disclosure import (
    SourceCodeDisclosureCve20121823, find_php_source, looks_binary,
)
from scanrules.core.models import AlertThreshold, AttackStrength, Risk, Tech

SOURCE = "<?php\necho 'secret';\n?>"
DISCLOSED = f"<html><body><code>{html.escape(SOURCE)}</code></body></html>".encode()
PAGE = b"<html><body>Welcome</body></html>"


@pytest.fixture
def rule() -> SourceCodeDisclosureCve20121823:
    return SourceCodeDisclosureCve20121823()


@pytest.fixture
def base(make_tx):
    return make_tx("https://example.com/index.php?page=1", headers=[("Content-Type", "text/html")],
                   body=PAGE, request_headers=[("Cookie", "PHPSESSID=1")])


def test_disclosed_source_raises_alert(rule, base, fake_host) -> None:
    host = fake_host(body=DISCLOSED)
    alerts = rule.scan(host, base)
    assert len(alerts) == 1
    alert = alerts[0]
    assert alert.rule_id == 20017
    assert alert.risk is Risk.HIGH
    assert alert.other_info == SOURCE
    assert alert.evidence == ""
    assert alert.uri == base.uri
    probe = host.sent[0]
    assert probe.uri == "https://example.com/index.php?-s"
    assert probe.request_headers.get("cookie") == "PHPSESSID=1"
    assert host.follow == [False]


def test_only_targets_php(rule) -> None:
    assert rule.applicable(frozenset({Tech.PHP, Tech.APACHE}))
    assert not rule.applicable(frozenset({Tech.JSP_SERVLET}))


def test_non_200_is_ignored(rule, base, fake_host) -> None:
    assert rule.scan(fake_host(status=500, body=DISCLOSED), base) == []


def test_plain_answer_is_ignored(rule, base, fake_host) -> None:
    assert rule.scan(fake_host(body=PAGE), base) == []


def test_page_already_showing_php_is_skipped(rule, make_tx, fake_host) -> None:
    tx = make_tx("https://example.com/docs.php", headers=[("Content-Type", "text/html")],
                 body=DISCLOSED)
    host = fake_host(body=DISCLOSED)
    assert rule.scan(host, tx) == []
    assert host.sent == []


def test_non_text_is_skipped(rule, make_tx, fake_host) -> None:
    host = fake_host(body=DISCLOSED)
    for content_type in ("image/png", None):
        headers = [("Content-Type", content_type)] if content_type else []
        assert rule.scan(host, make_tx("https://example.com/a.php", headers=headers)) == []
    assert host.sent == []


@pytest.mark.parametrize("strength,sends", [
    (AttackStrength.LOW, 0),
    (AttackStrength.MEDIUM, 0),
    (AttackStrength.HIGH, 1),
    (AttackStrength.INSANE, 1),
])
def test_404_needs_high_strength(rule, make_tx, fake_host, strength, sends) -> None:
    tx = make_tx("https://example.com/missing.php", status=404,
                 headers=[("Content-Type", "text/html")], body=b"not found")
    host = fake_host(body=DISCLOSED)
    alerts = rule.scan(host, tx, strength=strength)
    assert len(host.sent) == sends
    assert len(alerts) == sends


@pytest.mark.parametrize("threshold,sends", [
    (AlertThreshold.LOW, 1),
    (AlertThreshold.MEDIUM, 0),
    (AlertThreshold.HIGH, 0),
])
def test_javascript_needs_low_threshold(rule, make_tx, fake_host, threshold, sends) -> None:
    tx = make_tx("https://example.com/app.js", headers=[("Content-Type", "text/javascript")],
                 body=b"var a = 1;")
    host = fake_host(body=DISCLOSED)
    rule.scan(host, tx, threshold=threshold)
    assert len(host.sent) == sends


def test_binary_body_is_skipped(rule, make_tx, fake_host) -> None:
    tx = make_tx("https://example.com/a.php", headers=[("Content-Type", "text/plain")],
                 body=b"\x00\x01\x02binary")
    host = fake_host(body=DISCLOSED)
    assert rule.scan(host, tx) == []
    assert host.sent == []


def test_transport_error_and_cancellation(rule, base, failing_host, fake_host) -> None:
    assert rule.scan(failing_host, base) == []
    host = fake_host(body=DISCLOSED, stop_after_send=True)
    assert rule.scan(host, base) == []


def test_find_php_source_variants() -> None:
    assert find_php_source("<?= $x ?>") == "<?= $x ?>"
    assert find_php_source("&lt;?php echo 1; ?&gt;") == "<?php echo 1; ?>"
    assert find_php_source("<p>php is fun</p>") is None
    assert looks_binary("a\x00b")
    assert not looks_binary("plain text\r\n\ttabbed")
