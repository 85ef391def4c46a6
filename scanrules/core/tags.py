"""Alert tag constants (OWASP Top 10 mappings and scan policy membership)."""

from typing import Dict, Tuple

_TOP10_2021 = "https://owasp.org/Top10/"
_TOP10_2017 = "https://owasp.org/www-project-top-ten/2017/"

OWASP_2021_A01_BROKEN_AC = ("OWASP_2021_A01", _TOP10_2021 + "A01_2021-Broken_Access_Control/")
OWASP_2021_A04_INSECURE_DESIGN = ("OWASP_2021_A04", _TOP10_2021 + "A04_2021-Insecure_Design/")
OWASP_2021_A05_SEC_MISCONFIG = ("OWASP_2021_A05", _TOP10_2021 + "A05_2021-Security_Misconfiguration/")
OWASP_2021_A06_VULN_COMP = (
    "OWASP_2021_A06", _TOP10_2021 + "A06_2021-Vulnerable_and_Outdated_Components/")

OWASP_2017_A05_BROKEN_AC = ("OWASP_2017_A05", _TOP10_2017 + "A5_2017-Broken_Access_Control.html")
OWASP_2017_A06_SEC_MISCONFIG = (
    "OWASP_2017_A06", _TOP10_2017 + "A6_2017-Security_Misconfiguration.html")
OWASP_2017_A08_INSECURE_DESERIAL = (
    "OWASP_2017_A08", _TOP10_2017 + "A8_2017-Insecure_Deserialization.html")
OWASP_2017_A09_VULN_COMP = (
    "OWASP_2017_A09", _TOP10_2017 + "A9_2017-Using_Components_with_Known_Vulnerabilities.html")

# scan policies a rule belongs to; these tags carry no value
PENTEST = "PENTEST"
QA_STD = "QA_STD"
QA_FULL = "QA_FULL"
DEV_STD = "DEV_STD"


def build_tags(*common: Tuple[str, str], policies: Tuple[str, ...] = ()) -> Dict[str, str]:
    tags = dict(common)
    for policy in policies:
        tags[policy] = ""
    return tags
