from __future__ import annotations

from pathlib import Path

import pytest
from _pytest.monkeypatch import MonkeyPatch

from scanrules.core.config import ScanConfig, load_config, parse_config
from scanrules.core.errors import ConfigError
from scanrules.core.models import ALL_TECH, AlertThreshold, AttackStrength, Tech


def test_defaults() -> None:
    cfg = ScanConfig()
    assert cfg.strength is AttackStrength.MEDIUM
    assert cfg.threshold is AlertThreshold.MEDIUM
    assert cfg.technologies == ALL_TECH
    assert cfg.active is False
    assert cfg.diagnostics.enabled is False


def test_load_config_reads_yaml_and_env(tmp_path: Path, monkeypatch: MonkeyPatch) -> None:
    monkeypatch.setenv("DIAG_PASS", "s3cret")
    path = tmp_path / "scan.yml"
    path.write_text(
        "strength: high\n"
        "threshold: low\n"
        "technologies: [PHP, apache]\n"
        "active: true\n"
        "proxy: http://127.0.0.1:8080\n"
        "timeout: 2.5\n"
        "threads: 8\n"
        "rules:\n"
        "  10051:\n    strength: insane\n"
        "  '10098':\n    threshold: off\n"
        "diagnostics:\n"
        "  enabled: true\n"
        "  username: alice\n"
        "  password: ${DIAG_PASS}\n"
        "  log_file: diag.log\n",
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.strength is AttackStrength.HIGH
    assert cfg.threshold is AlertThreshold.LOW
    assert cfg.technologies == frozenset({Tech.PHP, Tech.APACHE})
    assert cfg.active is True
    assert cfg.proxy == "http://127.0.0.1:8080"
    assert cfg.timeout == 2.5
    assert cfg.threads == 8
    assert cfg.strength_for(10051) is AttackStrength.INSANE
    assert cfg.threshold_for(10051) is AlertThreshold.LOW
    assert cfg.threshold_for(10098) is AlertThreshold.OFF
    assert cfg.strength_for(99999) is AttackStrength.HIGH
    assert cfg.diagnostics.password == "s3cret"
    assert cfg.diagnostics.log_file == "diag.log"


@pytest.mark.parametrize("data,message", [
    ({"strength": "extreme"}, "AttackStrength"),
    ({"threshold": "loud"}, "AlertThreshold"),
    ({"technologies": ["COBOL"]}, "technology"),
    ({"rules": {"abc": {}}}, "integers"),
    ({"rules": {10051: "high"}}, "mapping"),
    ({"threads": 0}, "positive"),
    ({"timeout": "soon"}, "number"),
    (["not", "a", "mapping"], "mapping"),
])
def test_invalid_values_raise_config_error(data, message) -> None:
    with pytest.raises(ConfigError, match=message):
        parse_config(data)


def test_empty_file_is_default_config(tmp_path: Path) -> None:
    path = tmp_path / "empty.yml"
    path.write_text("", encoding="utf-8")
    assert load_config(path) == ScanConfig()


def test_unreadable_or_broken_files(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="cannot read"):
        load_config(tmp_path / "missing.yml")
    broken = tmp_path / "broken.yml"
    broken.write_text("strength: [high\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid YAML"):
        load_config(broken)
