"""Cross-domain misconfiguration - wildcard CORS origin in responses."""

from typing import List

from scanrules.checkers.base import PassiveRule
from scanrules.core import tags
from scanrules.core.models import (
    Alert, Category, Confidence, DetectorMetadata, Risk, Transaction,
)

ACAO_HEADER = "access-control-allow-origin"


class CrossDomainMisconfiguration(PassiveRule):
    """
    Flags ``Access-Control-Allow-Origin: *``.

    The value has to be exactly ``*``; ``*.example.com`` or an empty value is
    not a wildcard as far as browsers are concerned. Risk is Medium, not High:
    credentialed requests are refused by browsers when the origin is ``*``, so
    the exposure is limited to data readable without cookies.
    """

    meta = DetectorMetadata(
        rule_id=10098,
        name="Cross-Domain Misconfiguration",
        category=Category.SERVER,
        risk=Risk.MEDIUM,
        confidence=Confidence.MEDIUM,
        description=(
            "Web browser data loading may be possible, due to a Cross Origin "
            "Resource Sharing (CORS) misconfiguration on the web server."),
        solution=(
            "Ensure that sensitive data is not available in an unauthenticated "
            "manner (using IP address white-listing, for instance). Configure the "
            "\"Access-Control-Allow-Origin\" HTTP header to a more restrictive set "
            "of domains, or remove all CORS headers entirely, to allow the web "
            "browser to enforce the Same Origin Policy (SOP) in a more restrictive "
            "manner."),
        references=(
            "https://vulncat.fortify.com/en/detail?id=desc.config.dotnet."
            "html5_overly_permissive_cors_policy"),
        cwe_id=264,   # Permissions, Privileges, and Access Controls
        wasc_id=14,   # Server Misconfiguration
        tags=tags.build_tags(tags.OWASP_2021_A01_BROKEN_AC, tags.OWASP_2017_A05_BROKEN_AC,
                             policies=(tags.PENTEST, tags.QA_STD)),
    )

    OTHER_INFO = (
        "The CORS misconfiguration on the web server permits cross-domain read "
        "requests from arbitrary third party domains, using unauthenticated APIs "
        "on this domain. Web browser implementations do not permit arbitrary third "
        "parties to read the response from authenticated APIs, however. This "
        "reduces the risk somewhat. This misconfiguration could be used by an "
        "attacker to access data that is available in an unauthenticated manner, "
        "but which uses some other form of security, such as IP address "
        "white-listing.")

    def inspect_response(self, tx: Transaction) -> List[Alert]:
        self.debug(f"Checking {tx.uri} for Cross-Domain misconfigurations")
        values = tx.response_headers.get_list(ACAO_HEADER)
        if not values or values[0] != "*":
            return []

        self.debug(f"Raising a Medium risk Cross Domain alert on {ACAO_HEADER}: *")
        evidence = self.extract_evidence(tx.response_header_block(), ACAO_HEADER)
        return [self._build(evidence).set_uri(tx.uri).build()]

    def _build(self, evidence: str):
        return (self.new_alert()
                .set_other_info(self.OTHER_INFO)
                .set_evidence(evidence))

    @staticmethod
    def extract_evidence(header_block: str, header_name: str) -> str:
        """Cut the header line out of the raw block, from the name to the next CR."""
        # anchor on a line start so the name inside another header's value is skipped
        start = header_block.lower().find("\n" + header_name.lower() + ":")
        if start < 0:
            return ""
        start += 1
        end = header_block.find("\r", start)
        return header_block[start:end if end >= 0 else len(header_block)]

    def example_alerts(self) -> List[Alert]:
        return [self._build("access-control-allow-origin: *").build()]
