from colorama import init as colorama_init, Fore, Style
from datetime import datetime
import threading
colorama_init(autoreset=True)


class Log:
    def __init__(self, verbose: int = 1):
        self.verbose = verbose
        self.PAY = Fore.MAGENTA
        self._lock = threading.Lock()

    def _time(self):
        return datetime.now().strftime("[%H:%M:%S]")

    def _fmt(self, level: str, color: str):
        return f"{self._time()} {color}[{level}]{Style.RESET_ALL}"

    def _print(self, line: str):
        # worker threads share stdout
        with self._lock:
            print(line)

    def info(self, msg: str):
        if self.verbose >= 1:
            self._print(f"{self._fmt('INFO', Fore.CYAN)} {msg}")

    def warn(self, msg: str):
        if self.verbose >= 0:
            self._print(f"{self._fmt('WARNING', Fore.YELLOW)} {msg}")

    def ok(self, msg: str):
        self._print(f"{self._fmt('SUCCESS', Fore.GREEN)} {msg}")

    def fail(self, msg: str):
        if self.verbose >= 1:
            self._print(f"{self._fmt('FAIL', Fore.RED)} {msg}")

    def error(self, msg: str):
        self._print(f"{self._fmt('ERROR', Fore.RED + Style.BRIGHT)} {msg}")

    def debug(self, msg: str):
        if self.verbose >= 2:
            self._print(f"{self._fmt('DEBUG', Fore.MAGENTA)} {msg}")

    def finding(self, alert):
        sev_col = {"high": Fore.RED, "medium": Fore.YELLOW,
                   "low": Fore.GREEN}.get(alert.risk.label.lower(), Fore.WHITE)
        line = (f"{self._fmt(alert.risk.label.upper(), sev_col)} {alert.name} "
                f"{Style.DIM}[{alert.rule_id}, {alert.confidence.label} confidence]{Style.RESET_ALL} "
                f"{alert.uri}")
        if alert.evidence:
            line += f"\n    evidence: {self.PAY}{alert.evidence}{Style.RESET_ALL}"
        if alert.attack:
            line += f"\n    attack:   {self.PAY}{alert.attack}{Style.RESET_ALL}"
        if alert.other_info and self.verbose >= 2:
            line += "\n    " + alert.other_info.replace("\n", "\n    ")
        self._print(line)
