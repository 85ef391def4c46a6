from __future__ import annotations

import httpx
import pytest

from scanrules.core.config import ScanConfig
from scanrules.core.engine import Engine
from scanrules.core.models import Transaction
from scanrules.core.registry import default_registry

lab = pytest.importorskip("vuln_lab.app")

BASE = "http://lab.local"


@pytest.fixture
def engine() -> Engine:
    client = httpx.Client(transport=httpx.WSGITransport(app=lab.app))
    return Engine(default_registry(), config=ScanConfig(active=True), client=client)


@pytest.mark.parametrize("path,rule_id", [
    ("/api/profile", 10098),
    ("/session", 90002),
    ("/export.bin", 90002),
    ("/docs/guide.html", 10051),
    ("/index.php", 20017),
    ("/app", 10109),
])
def test_each_endpoint_triggers_its_rule(engine, path, rule_id) -> None:
    alerts = engine.process(Transaction.request("GET", BASE + path))
    assert rule_id in {a.rule_id for a in alerts}


def test_home_page_is_clean(engine) -> None:
    assert engine.process(Transaction.request("GET", BASE + "/")) == []
