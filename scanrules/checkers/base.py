"""Abstract bases for all scan rules: passive (read-only) and active (may send)."""

from abc import ABC, abstractmethod
from typing import FrozenSet, List
import random
import string

from scanrules.core.models import (
    Alert, AlertBuilder, AlertThreshold, AttackStrength, DetectorMetadata,
    Tech, Transaction,
)


class BaseRule(ABC):
    """State and helpers shared by every rule. Subclasses set ``meta``."""

    meta: DetectorMetadata

    def __init__(self, logger=None):
        self.logger = logger

    @property
    def rule_id(self) -> int:
        return self.meta.rule_id

    @property
    def name(self) -> str:
        return self.meta.name

    def applicable(self, techs: FrozenSet[Tech]) -> bool:
        """Whether the rule targets any of the declared technologies."""
        if self.meta.technologies is None:
            return True
        return bool(self.meta.technologies & frozenset(techs))

    def new_alert(self) -> AlertBuilder:
        return self.meta.new_alert()

    def example_alerts(self) -> List[Alert]:
        """Representative alerts, used for documentation and export samples."""
        return []

    # ── shared helpers ──────────────────────────────────────────

    @staticmethod
    def rand(n: int = 8, chars: str = string.ascii_letters + string.digits) -> str:
        """Random canary string drawn from ``chars``."""
        return "".join(random.choice(chars) for _ in range(n))

    def debug(self, msg: str):
        if self.logger:
            self.logger.debug(f"[{self.rule_id}] {msg}")


class PassiveRule(BaseRule):
    """Inspects existing transactions. Never sends anything, never mutates."""

    def inspect_request(self, tx: Transaction) -> List[Alert]:
        return []

    def inspect_response(self, tx: Transaction) -> List[Alert]:
        return []


class ActiveRule(BaseRule):
    """Builds follow-up transactions and sends them through ``host``.

    ``host`` provides ``send(tx, follow_redirects)`` and ``is_stopped()``.
    Rules check ``is_stopped()`` around every send and return no alert once
    the scan has been cancelled.
    """

    @abstractmethod
    def scan(
        self,
        host,
        base: Transaction,
        strength: AttackStrength = AttackStrength.MEDIUM,
        threshold: AlertThreshold = AlertThreshold.MEDIUM,
    ) -> List[Alert]:
        ...
