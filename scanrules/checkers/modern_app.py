"""Modern Web Application - pages that look script-driven (SPA style)."""

from typing import List, Optional, Tuple

from scanrules.checkers.base import PassiveRule
from scanrules.core import tags
from scanrules.core.models import (
    Alert, Category, Confidence, DetectorMetadata, Risk, Transaction,
)
from scanrules.parsers.html import Document


class ModernAppDetection(PassiveRule):
    """
    Informational: tells the user that a traditional spider will probably
    miss content and an AJAX/browser-driven one should be used instead.
    """

    meta = DetectorMetadata(
        rule_id=10109,
        name="Modern Web Application",
        category=Category.INFO_GATHER,
        risk=Risk.INFO,
        confidence=Confidence.MEDIUM,
        description=(
            "The application appears to be a modern web application. If you need to "
            "explore it automatically then a browser-driven spider may well be more "
            "effective than a traditional one."),
        solution="This is an informational alert and so no changes are required.",
        tags=tags.build_tags(policies=(tags.PENTEST, tags.DEV_STD, tags.QA_STD)),
    )

    OTHER_INFO = {
        "no_links": "No links have been found while there are scripts, which is an "
                    "indication that this is a modern web application.",
        "links_no_target": "Links have been found that do not have traditional href "
                           "attributes, which is an indication that this is a modern "
                           "web application.",
        "links_self_target": "Links have been found with a target of '_self' - this is "
                             "often used by modern frameworks to force a full page reload.",
        "noscript": "A noscript tag has been found, which is an indication that the "
                    "application works differently with JavaScript enabled compared "
                    "to when it is not.",
    }

    def inspect_response(self, tx: Transaction) -> List[Alert]:
        content_type = (tx.content_type() or "").lower()
        if "html" not in content_type:
            return []
        found = self.find_evidence(Document.parse(tx.response_text()))
        if found is None:
            return []
        evidence, reason = found
        return [self.new_alert()
                .set_evidence(evidence)
                .set_other_info(self.OTHER_INFO[reason])
                .set_uri(tx.uri)
                .build()]

    @staticmethod
    def find_evidence(doc: Document) -> Optional[Tuple[str, str]]:
        links = doc.select("a")
        if not links:
            scripts = doc.select("script")
            if scripts:
                return doc.outer_html(scripts[0]), "no_links"
        else:
            for link in links:
                href = link.attr("href")
                if not href or href == "#":
                    return doc.outer_html(link), "links_no_target"
                if link.attr("target") == "_self":
                    return doc.outer_html(link), "links_self_target"
        noscripts = doc.select("noscript")
        if noscripts:
            return doc.outer_html(noscripts[0]), "noscript"
        return None

    def example_alerts(self) -> List[Alert]:
        return [self.new_alert()
                .set_evidence("<a href=\"#\">Link</a>")
                .set_other_info(self.OTHER_INFO["links_no_target"])
                .build()]
