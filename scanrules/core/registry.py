"""Explicit rule registry, built once at start-up."""

from typing import Dict, Iterator, List

from scanrules.checkers.base import ActiveRule, BaseRule, PassiveRule
from scanrules.checkers.cors import CrossDomainMisconfiguration
from scanrules.checkers.jso import JavaSerializedObject
from scanrules.checkers.modern_app import ModernAppDetection
from scanrules.checkers.relative_path import RelativePathConfusion
from scanrules.checkers.source_disclosure import SourceCodeDisclosureCve20121823


class Registry:
    """Rules keyed by id, iterated in registration order."""

    def __init__(self):
        self._rules: Dict[int, BaseRule] = {}

    def register(self, rule: BaseRule) -> BaseRule:
        if rule.rule_id in self._rules:
            raise ValueError(f"duplicate rule id {rule.rule_id}")
        self._rules[rule.rule_id] = rule
        return rule

    def get(self, rule_id: int) -> BaseRule:
        return self._rules[rule_id]

    def __contains__(self, rule_id) -> bool:
        return rule_id in self._rules

    def __iter__(self) -> Iterator[BaseRule]:
        return iter(list(self._rules.values()))

    def __len__(self) -> int:
        return len(self._rules)

    def passive(self) -> List[PassiveRule]:
        return [r for r in self._rules.values() if isinstance(r, PassiveRule)]

    def active(self) -> List[ActiveRule]:
        return [r for r in self._rules.values() if isinstance(r, ActiveRule)]


def default_registry(logger=None) -> Registry:
    registry = Registry()
    for rule_cls in (
        CrossDomainMisconfiguration,
        JavaSerializedObject,
        ModernAppDetection,
        RelativePathConfusion,
        SourceCodeDisclosureCve20121823,
    ):
        registry.register(rule_cls(logger=logger))
    return registry
