"""Scan configuration: YAML file, environment expansion, CLI overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional

import yaml

from scanrules.core.errors import ConfigError
from scanrules.core.models import ALL_TECH, AlertThreshold, AttackStrength, Tech


def expand_env(value: Any) -> Any:
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, list):
        return [expand_env(v) for v in value]
    if isinstance(value, dict):
        return {k: expand_env(v) for k, v in value.items()}
    return value


@dataclass
class RuleOverride:
    strength: Optional[AttackStrength] = None
    threshold: Optional[AlertThreshold] = None


@dataclass
class DiagnosticsConfig:
    enabled: bool = False
    username: Optional[str] = None
    password: Optional[str] = None
    log_file: Optional[str] = None


@dataclass
class ScanConfig:
    strength: AttackStrength = AttackStrength.MEDIUM
    threshold: AlertThreshold = AlertThreshold.MEDIUM
    technologies: FrozenSet[Tech] = ALL_TECH
    rules: Dict[int, RuleOverride] = field(default_factory=dict)
    active: bool = False
    proxy: Optional[str] = None
    timeout: float = 10.0
    threads: int = 4
    diagnostics: DiagnosticsConfig = field(default_factory=DiagnosticsConfig)

    def strength_for(self, rule_id: int) -> AttackStrength:
        override = self.rules.get(rule_id)
        if override and override.strength is not None:
            return override.strength
        return self.strength

    def threshold_for(self, rule_id: int) -> AlertThreshold:
        override = self.rules.get(rule_id)
        if override and override.threshold is not None:
            return override.threshold
        return self.threshold


def _threshold(value: Any) -> AlertThreshold:
    # YAML 1.1 reads a bare `off` as false
    if value is False:
        return AlertThreshold.OFF
    return AlertThreshold.parse(value)


def _mapping(value: Any, where: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{where} must be a YAML mapping")
    return value


def _text(value: Any) -> Optional[str]:
    # YAML turns bare digits into ints; secrets are compared as text
    return str(value) if value not in (None, "") else None


def _positive(value: Any, where: str, kind=int):
    try:
        number = kind(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{where} must be a number, got {value!r}") from None
    if number <= 0:
        raise ConfigError(f"{where} must be positive, got {value!r}")
    return number


def parse_config(data: Any) -> ScanConfig:
    """Build a ``ScanConfig`` from an already loaded mapping."""
    data = expand_env(_mapping(data, "config"))
    cfg = ScanConfig()
    if "strength" in data:
        cfg.strength = AttackStrength.parse(data["strength"])
    if "threshold" in data:
        cfg.threshold = _threshold(data["threshold"])
    if data.get("technologies"):
        techs = data["technologies"]
        if isinstance(techs, str):
            techs = [techs]
        cfg.technologies = frozenset(Tech.parse(t) for t in techs)
    for key, raw in _mapping(data.get("rules"), "rules").items():
        try:
            rule_id = int(key)
        except (TypeError, ValueError):
            raise ConfigError(f"rule ids must be integers, got {key!r}") from None
        raw = _mapping(raw, f"rules.{key}")
        cfg.rules[rule_id] = RuleOverride(
            strength=AttackStrength.parse(raw["strength"]) if "strength" in raw else None,
            threshold=_threshold(raw["threshold"]) if "threshold" in raw else None,
        )
    cfg.active = bool(data.get("active", cfg.active))
    cfg.proxy = data.get("proxy") or None
    if "timeout" in data:
        cfg.timeout = _positive(data["timeout"], "timeout", float)
    if "threads" in data:
        cfg.threads = _positive(data["threads"], "threads")

    diag = _mapping(data.get("diagnostics"), "diagnostics")
    cfg.diagnostics = DiagnosticsConfig(
        enabled=bool(diag.get("enabled", False)),
        username=_text(diag.get("username")),
        password=_text(diag.get("password")),
        log_file=diag.get("log_file") or None,
    )
    return cfg


def load_config(path: Path) -> ScanConfig:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read config {path}: {exc.strerror}") from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}: {exc}") from exc
    return parse_config(data)
