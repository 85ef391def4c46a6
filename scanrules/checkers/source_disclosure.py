"""Source Code Disclosure - CVE-2012-1823 (PHP-CGI "-s" query flag)."""

import re
from html import unescape
from typing import List, Optional
from urllib.parse import urlsplit, urlunsplit

from scanrules.checkers.base import ActiveRule
from scanrules.core import tags
from scanrules.core.errors import TransportError
from scanrules.core.models import (
    Alert, AlertThreshold, AttackStrength, Category, Confidence,
    DetectorMetadata, Risk, Tech, Transaction,
)

PHP_SOURCE_TAGS = re.compile(r"<\?php\s.*?\?>", re.S | re.I)
PHP_SOURCE_ECHO_TAGS = re.compile(r"<\?=.*?\?>", re.S)

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0e-\x1f\ufffd]")


def find_php_source(text: str) -> Optional[str]:
    """PHP source in ``text`` once HTML entities are decoded."""
    decoded = unescape(text)
    for rx in (PHP_SOURCE_TAGS, PHP_SOURCE_ECHO_TAGS):
        m = rx.search(decoded)
        if m:
            return m.group(0)
    return None


def looks_binary(text: str) -> bool:
    return bool(_CONTROL_CHARS.search(text[:512]))


class SourceCodeDisclosureCve20121823(ActiveRule):
    """
    PHP running as CGI up to 5.3.12/5.4.2 reads command line flags from the
    query string, so ``?-s`` makes it print the highlighted script source.
    """

    meta = DetectorMetadata(
        rule_id=20017,
        name="Source Code Disclosure - CVE-2012-1823",
        category=Category.INFO_GATHER,
        risk=Risk.HIGH,
        confidence=Confidence.MEDIUM,
        description=(
            "Some PHP versions, when configured to run using CGI, do not correctly "
            "handle query strings that lack an unescaped \"=\" character, enabling "
            "PHP source code disclosure, and arbitrary code execution. In this case, "
            "the contents of the PHP file were served directly to the web browser. "
            "This output will typically contain PHP, although it may also contain "
            "straight HTML."),
        solution=(
            "Upgrade to the latest stable version of PHP, or use the Apache web "
            "server and the mod_rewrite module to filter out malicious requests using "
            "the \"RewriteCond\" and \"RewriteRule\" directives."),
        references=(
            "https://nvd.nist.gov/vuln/detail/CVE-2012-1823\n"
            "https://www.kb.cert.org/vuls/id/520827"),
        cwe_id=20,
        wasc_id=20,
        tags=dict(tags.build_tags(tags.OWASP_2021_A06_VULN_COMP, tags.OWASP_2017_A09_VULN_COMP,
                                  policies=(tags.QA_FULL, tags.PENTEST)),
                  **{"CVE-2012-1823": "https://nvd.nist.gov/vuln/detail/CVE-2012-1823"}),
        technologies=frozenset({Tech.PHP}),
    )

    @staticmethod
    def attack_uri(uri: str) -> str:
        parts = urlsplit(uri)
        return urlunsplit((parts.scheme, parts.netloc, parts.path or "/", "-s", ""))

    @staticmethod
    def _is_javascript(tx: Transaction) -> bool:
        content_type = (tx.content_type() or "").lower()
        return "javascript" in content_type or urlsplit(tx.uri).path.lower().endswith(".js")

    def scan(
        self,
        host,
        base: Transaction,
        strength: AttackStrength = AttackStrength.MEDIUM,
        threshold: AlertThreshold = AlertThreshold.MEDIUM,
    ) -> List[Alert]:
        content_type = (base.content_type() or "").lower()
        if "text" not in content_type:
            self.debug(f"Skipping non-text response for {base.uri}")
            return []
        if base.status == 404 and strength < AttackStrength.HIGH:
            self.debug(f"Skipping 404 page {base.uri} at strength {strength.label}")
            return []
        if self._is_javascript(base) and threshold != AlertThreshold.LOW:
            self.debug(f"Skipping JavaScript resource {base.uri} at threshold {threshold.label}")
            return []

        original = base.response_text()
        if looks_binary(original):
            return []
        if find_php_source(original) is not None:
            # the page already shows PHP, a hit would prove nothing
            return []

        attack = self.attack_uri(base.uri)
        probe = Transaction.request("GET", attack,
                                    headers=[("Cookie", v) for v in
                                             base.request_headers.get_list("cookie")],
                                    version=base.version)
        if host.is_stopped():
            return []
        try:
            answered = host.send(probe, follow_redirects=False)
        except TransportError as exc:
            self.debug(f"No evidence, the probe failed: {exc}")
            return []
        if host.is_stopped() or answered.status != 200:
            return []

        source = find_php_source(answered.response_text())
        if source is None:
            return []
        self.debug(f"PHP source disclosed at {attack}")
        return [self.new_alert()
                .set_other_info(source)
                .set_uri(base.uri)
                .build()]

    def example_alerts(self) -> List[Alert]:
        return [self.new_alert().set_other_info("<?php echo 'hello'; ?>").build()]
