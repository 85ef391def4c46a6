"""Exception hierarchy shared by the engine, the rules and the CLI."""


class ScanError(Exception):
    """Base class for every error raised by scanrules."""


class TransportError(ScanError):
    """A follow-up request could not be sent or answered."""

    def __init__(self, uri: str, reason: str):
        super().__init__(f"{uri}: {reason}")
        self.uri = uri
        self.reason = reason


class ScanCancelled(ScanError):
    """The scan was stopped between two sends."""


class ConfigError(ScanError, ValueError):
    """Invalid configuration value or file."""


class ParseError(ScanError, ValueError):
    """A raw HTTP message could not be parsed."""
