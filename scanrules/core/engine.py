import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Optional

import httpx

from scanrules.checkers.base import BaseRule
from scanrules.core.config import ScanConfig
from scanrules.core.errors import ScanCancelled, TransportError
from scanrules.core.models import Alert, AlertThreshold, Transaction
from scanrules.core.registry import Registry

# recomputed by httpx from the body that is actually sent
_STOP_HDRS = {b"content-length", b"transfer-encoding"}


class Engine:
    def __init__(self, registry: Registry, config: Optional[ScanConfig] = None, logger=None,
                 on_alert: Optional[Callable[[Alert], None]] = None, collector=None,
                 client: Optional[httpx.Client] = None):
        self.name = "scanrules"
        self.version = "1.0.0"
        self.registry = registry
        self.config = config or ScanConfig()
        self.logger = logger
        self.on_alert = on_alert
        self.collector = collector
        self._stopped = threading.Event()
        self._sink_lock = threading.Lock()
        self.client = client or httpx.Client(
            verify=False, proxy=self.config.proxy, follow_redirects=False,
            timeout=self.config.timeout)

    def close(self):
        self.client.close()

    # ---------- host interface for active rules ----------

    def stop(self):
        self._stopped.set()

    def is_stopped(self) -> bool:
        return self._stopped.is_set()

    def send(self, tx: Transaction, follow_redirects: bool = True) -> Transaction:
        if self.is_stopped():
            raise ScanCancelled(tx.uri)
        # raw octets, header values need not be ASCII
        headers = [(k, v) for k, v in tx.request_headers.raw
                   if k.lower() not in _STOP_HDRS]
        if self.logger and self.logger.verbose >= 2:
            self.logger.debug(f"→ {tx.method} {tx.uri}")
        try:
            resp = self.client.request(tx.method, tx.uri, headers=headers,
                                       content=tx.request_body or None,
                                       follow_redirects=follow_redirects)
        except httpx.HTTPError as exc:
            raise TransportError(tx.uri, str(exc) or type(exc).__name__) from exc
        return tx.with_response(resp.status_code, headers=resp.headers.raw,
                                body=resp.content, reason=resp.reason_phrase)

    # ---------- dispatch ----------

    def _enabled(self, rule: BaseRule) -> bool:
        if self.config.threshold_for(rule.rule_id) == AlertThreshold.OFF:
            return False
        if not rule.applicable(self.config.technologies):
            if self.logger:
                self.logger.debug(f"[{rule.rule_id}] not applicable to the target technologies")
            return False
        return True

    def _run(self, rule: BaseRule, call: Callable[[], List[Alert]], uri: str) -> List[Alert]:
        try:
            alerts = call() or []
        except ScanCancelled:
            if self.logger:
                self.logger.debug(f"[{rule.rule_id}] stopped while scanning {uri}")
            return []
        except Exception as exc:
            # one broken rule must not end the scan
            if self.logger:
                self.logger.error(f"Rule {rule.rule_id} ({rule.name}) failed on {uri}: {exc!r}")
            return []
        for alert in alerts:
            self._emit(alert)
        return alerts

    def _emit(self, alert: Alert):
        with self._sink_lock:
            if self.logger:
                self.logger.finding(alert)
            if self.on_alert:
                self.on_alert(alert)

    def run_passive(self, tx: Transaction) -> List[Alert]:
        results: List[Alert] = []
        for rule in self.registry.passive():
            if not self._enabled(rule):
                continue
            results += self._run(rule, lambda r=rule: r.inspect_request(tx), tx.uri)
            if tx.has_response:
                results += self._run(rule, lambda r=rule: r.inspect_response(tx), tx.uri)
        return results

    def run_active(self, tx: Transaction) -> List[Alert]:
        results: List[Alert] = []
        for rule in self.registry.active():
            if self.is_stopped():
                break
            if not self._enabled(rule):
                continue
            strength = self.config.strength_for(rule.rule_id)
            threshold = self.config.threshold_for(rule.rule_id)
            if self.logger:
                self.logger.info(f"Scanning {rule.name} on {tx.uri}")
            found = self._run(rule, lambda r=rule: r.scan(self, tx, strength, threshold), tx.uri)
            if self.logger and not found:
                self.logger.fail(f"No findings for {rule.name}")
            results += found
        return results

    def process(self, tx: Transaction) -> List[Alert]:
        if not tx.has_response:
            try:
                tx = self.send(tx)
            except (TransportError, ScanCancelled) as exc:
                if self.logger:
                    self.logger.warn(f"Base request failed: {exc}")
                return self.run_passive(tx)
        alerts = self.run_passive(tx)
        if self.collector is not None:
            self.collector.on_response(tx)
        if self.config.active:
            alerts += self.run_active(tx)
        return alerts

    def process_all(self, txs: Iterable[Transaction], threads: Optional[int] = None) -> List[Alert]:
        workers = threads or self.config.threads
        with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
            batches = list(pool.map(self.process, txs))
        return [alert for batch in batches for alert in batch]

    def summary(self, alerts: List[Alert]) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for alert in alerts:
            counts[alert.risk.label] = counts.get(alert.risk.label, 0) + 1
        return counts
