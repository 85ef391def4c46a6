"""Relative Path Confusion - server answers extra path segments with the same page.

Strategy:
  1) Only URLs whose last path segment has a file extension are candidates.
  2) Request the page again with two random directories appended.
  3) A single <base href> in the head fixes the base URL; nothing to confuse.
  4) Look for a resource loaded through a relative URL (attribute or CSS).
  5) The browser must be able to ignore the Content-Type: none declared,
     quirks mode on (explicit or implicit), or the page can be framed.
Every observation from steps 3 to 5 ends up in the alert's other-info.
"""

import re
from types import MappingProxyType
from typing import List, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

from scanrules.checkers.base import ActiveRule
from scanrules.core import tags
from scanrules.core.errors import TransportError
from scanrules.core.models import (
    Alert, AlertThreshold, AttackStrength, Category, Confidence,
    DetectorMetadata, Risk, Transaction,
)
from scanrules.parsers.html import Document, Element

_MEDIA_TAGS = ("img", "iframe", "frame", "embed", "script", "input", "audio", "video", "source")

# attribute -> tags that load a resource through it; order is scan order.
# "style" on any tag (""), and the body of <style> elements (attribute "").
RELATIVE_LOADING_ATTRIBUTE_TO_TAGS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("href", ("link", "a", "area")),
    ("src", _MEDIA_TAGS),
    ("lowersrc", _MEDIA_TAGS),
    ("dynsrc", _MEDIA_TAGS),
    ("action", ("form",)),
    ("data", ("object",)),
    ("codebase", ("applet", "object")),
    ("cite", ("blockquote", "del", "ins", "q")),
    ("background", ("body",)),
    ("longdesc", ("frame", "iframe", "img")),
    ("profile", ("head",)),
    ("usemap", ("img", "input", "object")),
    ("classid", ("object",)),
    ("formaction", ("button",)),
    ("icon", ("command", "input")),
    ("manifest", ("html",)),
    ("poster", ("video",)),
    ("archive", ("object", "applet")),
    ("style", ("",)),
    ("", ("style",)),
)

# public ids known to trigger quirks mode in at least one major browser
DOCTYPE_PUBLIC_IDS_TRIGGERING_QUIRKS_MODE = frozenset(pid.upper() for pid in (
    "-//W3C//DTD HTML 3.2 Final//EN",
    "-//W3C//DTD HTML 4.01//EN",
    "-//W3C//DTD HTML 4.0 Transitional//EN",
    "-//W3C//DTD HTML 4.01 Transitional//EN",
    "-//W3C//DTD XHTML 1.0 Transitional//EN",
    "-//W3C//DTD XHTML 1.1//EN",
    "-//W3C//DTD XHTML Basic 1.0//EN",
    "-//W3C//DTD XHTML 1.0 Strict//EN",
    "ISO/IEC 15445:2000//DTD HTML//EN",
    "ISO/IEC 15445:2000//DTD HyperText Markup Language//EN",
    "ISO/IEC 15445:1999//DTD HTML//EN",
    "ISO/IEC 15445:1999//DTD HyperText Markup Language//EN",
))

# e.g. "background: url(image.png)"; absolute, root-relative and fragment targets excluded
STYLE_URL_LOAD = re.compile(
    r"[a-zA-Z_-]*\s*:\s*url\s*\(\s*[\"']?(?!https?:)(?![/#])[^)\"']*[\"']?\s*\)",
    re.I | re.M | re.S,
)

_ABSOLUTE_PREFIXES = ("HTTP://", "HTTPS://", "/", "#")

# no "." in here: the appended segments must not look like a file extension
RANDOM_PATH_CHARS = "abcdefghijklmnopqrstuvwxyz0123456789"

MESSAGES = MappingProxyType({
    "no_base_tag": (
        "There is no <base> element in the HTML <head> to define the location "
        "for relative URLs, so the browser resolves them against the page URL."),
    "more_than_one_base_tag": (
        "More than one <base> element was specified in the HTML <head> to define "
        "the location for relative URLs, which is not valid."),
    "content_type_enabled": (
        "A Content-Type of {0} was specified, so a way to bypass it is needed."),
    "quirks_mode_explicit": (
        "Quirks mode is explicitly enabled via <meta http-equiv=\"x-ua-compatible\" "
        "content=\"{0}\">, which allows the specified Content-Type to be bypassed."),
    "quirks_mode_implicit": (
        "Quirks mode is implicitly enabled via the use of old doctype \"{0}\", "
        "which allows the specified Content-Type to be bypassed."),
    "quirks_mode_no_doctype": (
        "Quirks mode is implicitly enabled via the absence of a doctype, which "
        "allows the specified Content-Type to be bypassed."),
    "framing_allowed": (
        "The response may be framed by a third party page, which can force quirks "
        "mode and so bypass the specified Content-Type."),
    "no_content_type": (
        "No Content-Type was specified, so no quirks mode is required to exploit "
        "the vulnerability in the browser."),
})


def file_extension(uri: str) -> str:
    name = urlsplit(uri).path.rpartition("/")[2]
    return name.rpartition(".")[2] if "." in name else ""


def match_styles(css: str) -> Optional[re.Match]:
    return STYLE_URL_LOAD.search(css)


class RelativePathConfusion(ActiveRule):

    meta = DetectorMetadata(
        rule_id=10051,
        name="Relative Path Confusion",
        category=Category.SERVER,
        risk=Risk.MEDIUM,
        confidence=Confidence.MEDIUM,
        description=(
            "The web server is configured to serve responses to ambiguous URLs in a "
            "manner that is likely to lead to confusion about the correct \"relative "
            "path\" for the URL. Resources (CSS, images, etc.) are also specified in "
            "the page response using relative, rather than absolute URLs. In an "
            "attack, if the web browser parses the \"cross-content\" response in a "
            "permissive manner, or can be tricked into permissively parsing the "
            "\"cross-content\" response, using techniques such as framing, then the "
            "web browser may be fooled into interpreting HTML as CSS (or other "
            "content types), leading to an XSS vulnerability."),
        solution=(
            "Web servers and frameworks should be updated to be configured to not "
            "serve responses to ambiguous URLs in such a way that the relative path "
            "of such URLs could be confused by components on the client side. Within "
            "the application, the correct use of the \"<base>\" HTML tag in the HTTP "
            "response will unambiguously specify the base URL for all relative URLs "
            "in the document. Use the \"Content-Type\" HTTP response header to make it "
            "harder for the attacker to force the web browser to mis-interpret the "
            "content type of the response. Use the \"X-Content-Type-Options: "
            "nosniff\" HTTP response header to prevent the web browser from "
            "\"sniffing\" the content type of the response. Use a modern DOCTYPE such "
            "as \"<!doctype html>\" to prevent the page from being rendered in quirks "
            "mode in the web browser, since this results in the content type being "
            "ignored by the web browser. Specify the \"X-Frame-Options\" HTTP response "
            "header to prevent quirks mode from being enabled in the web browser "
            "using framing attacks."),
        references=(
            "https://arxiv.org/abs/1811.00917\n"
            "https://hsivonen.fi/doctype/\n"
            "https://www.w3schools.com/tags/tag_base.asp"),
        cwe_id=20,    # Improper Input Validation
        wasc_id=20,   # Improper Input Handling
        tags=tags.build_tags(tags.OWASP_2021_A05_SEC_MISCONFIG,
                             tags.OWASP_2017_A06_SEC_MISCONFIG,
                             policies=(tags.QA_FULL, tags.PENTEST)),
    )

    def __init__(self, logger=None):
        super().__init__(logger)
        # one attack path per rule instance so repeated scans report the same URL
        self.attack_path = (f"/{self.rand(5, RANDOM_PATH_CHARS)}"
                            f"/{self.rand(5, RANDOM_PATH_CHARS)}")

    def attack_uri(self, uri: str) -> str:
        parts = urlsplit(uri)
        return urlunsplit((parts.scheme, parts.netloc, parts.path + self.attack_path,
                           parts.query, ""))

    def scan(
        self,
        host,
        base: Transaction,
        strength: AttackStrength = AttackStrength.MEDIUM,
        threshold: AlertThreshold = AlertThreshold.MEDIUM,
    ) -> List[Alert]:
        self.debug(f"Attacking at strength {strength.label}: [{base.method}] {base.uri}")

        # 1: file extension gate
        ext = file_extension(base.uri)
        if not ext:
            self.debug("No file extension in the last path segment, no confusion possible")
            return []
        self.debug(f"The file extension of {base.uri} is {ext}")

        # 2: ambiguous URL
        hacked_uri = self.attack_uri(base.uri)
        probe = Transaction.request(
            "GET", hacked_uri,
            headers=[("Cookie", v) for v in base.request_headers.get_list("cookie")],
            version=base.version,
        )
        if host.is_stopped():
            return []
        try:
            hacked = host.send(probe, follow_redirects=True)
        except TransportError as exc:
            self.debug(f"No evidence, the probe failed: {exc}")
            return []
        if host.is_stopped():
            return []

        doc = Document.parse(hacked.response_text())
        if not doc.complete:
            self.debug(f"The response of {hacked_uri} was only partly parsed")
        other_info: List[str] = []

        # 3: <base href> in the head
        bases = [e for e in doc.select("base", "href") if doc.in_head(e)]
        if len(bases) == 1:
            self.debug("A single <base> was specified, relative paths are unambiguous")
            return []
        if len(bases) > 1:
            other_info.append(MESSAGES["more_than_one_base_tag"])
        else:
            other_info.append(MESSAGES["no_base_tag"])

        # 4: resources loaded through a relative URL
        evidence = self.find_relative_reference(doc)
        if evidence is None:
            self.debug("No relative references in the response, nothing to confuse")
            return []

        # 5: can the declared Content-Type be bypassed?
        content_type = hacked.response_headers.get("content-type")
        if content_type is not None:
            other_info.append(MESSAGES["content_type_enabled"].format(content_type))
            quirks_mode = self.quirks_mode(doc, other_info)
            framing_possible = False
            if not quirks_mode:
                framing_possible = self.framing_possible(hacked, other_info)
            if not quirks_mode and not framing_possible:
                self.debug("Quirks mode is off and the page cannot be framed, "
                           "the Content-Type cannot be bypassed")
                return []
        else:
            other_info.append(MESSAGES["no_content_type"])

        # 6
        self.debug(f"A Relative Path Confusion issue exists on {base.uri}")
        alert = (self._build(hacked_uri, "\n".join(other_info), evidence)
                 .set_uri(base.uri)
                 .build())
        return [alert]

    def find_relative_reference(self, doc: Document) -> Optional[str]:
        """Markup of the first resource loaded via a relative URL, or None."""
        for attribute, tag_names in RELATIVE_LOADING_ATTRIBUTE_TO_TAGS:
            for tag in tag_names:
                for element in doc.select(tag or None, attribute or None):
                    evidence = self._relative_evidence(doc, element, attribute)
                    if evidence is not None:
                        self.debug(f"Got relative reference via {tag}[{attribute}]: {evidence}")
                        return evidence
        return None

    @staticmethod
    def _relative_evidence(doc: Document, element: Element, attribute: str) -> Optional[str]:
        if element.tag == "style" and not attribute:
            m = match_styles(element.text)
            return m.group(0) if m else None
        value = element.attr(attribute) or ""
        if attribute == "style":
            if not match_styles(value):
                return None
            return doc.raw_attr(element, "style") or doc.start_tag(element)
        if value.strip().upper().startswith(_ABSOLUTE_PREFIXES):
            return None
        return doc.outer_html(element)

    def quirks_mode(self, doc: Document, other_info: List[str]) -> bool:
        # X-UA-Compatible in the head trumps the doctype
        quirks = False
        for meta in doc.select("meta", "http-equiv"):
            if not doc.in_head(meta):
                continue
            equiv = (meta.attr("http-equiv") or "").strip().upper()
            content = meta.attr("content") or ""
            if equiv == "X-UA-COMPATIBLE" and content.strip().upper() != "IE=EDGE":
                self.debug(f"Quirks mode explicitly enabled via X-UA-Compatible {content!r}")
                other_info.append(MESSAGES["quirks_mode_explicit"].format(content))
                quirks = True
        if quirks:
            return True

        if doc.doctype is None:
            self.debug("Quirks mode implicitly enabled, no doctype")
            other_info.append(MESSAGES["quirks_mode_no_doctype"])
            return True
        public_id = doc.doctype.public_id
        if public_id.upper() in DOCTYPE_PUBLIC_IDS_TRIGGERING_QUIRKS_MODE:
            self.debug(f"Quirks mode implicitly enabled via old doctype {public_id}")
            other_info.append(MESSAGES["quirks_mode_implicit"].format(public_id))
            return True
        return False

    def framing_possible(self, hacked: Transaction, other_info: List[str]) -> bool:
        frame_options = hacked.response_headers.get("x-frame-options")
        if frame_options is None:
            other_info.append(MESSAGES["framing_allowed"])
            return True
        # DENY, SAMEORIGIN and ALLOW-FROM all rule framing out; so does anything else sent
        self.debug(f"X-Frame-Options: {frame_options} rules out a framing attack")
        return False

    def _build(self, attack: str, other_info: str, evidence: str):
        return (self.new_alert()
                .set_attack(attack)
                .set_other_info(other_info)
                .set_evidence(evidence))

    def example_alerts(self) -> List[Alert]:
        return [self._build("https://example.com/profile/ybpsv/bqmmn/?foo=bar",
                            MESSAGES["no_content_type"],
                            "background: url(image.png)").build()]
