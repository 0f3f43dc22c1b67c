from __future__ import annotations


class ConnExporterError(Exception):
    pass


class DecodeError(ConnExporterError, ValueError):
    """A /proc/net address field could not be decoded; the row is skipped."""


class MalformedAddress(DecodeError):
    pass


class InvalidHex(DecodeError):
    pass


class InvalidAddressLength(DecodeError):
    pass


class UnsupportedAddressFamily(DecodeError):
    pass


class SourceUnavailable(ConnExporterError):
    def __init__(self, path: str, reason: str = ""):
        self.path = path
        self.reason = reason
        super().__init__(f"connection table {path} unavailable" + (f": {reason}" if reason else ""))


class ResolutionDegraded(ConnExporterError):
    pass


class InterfaceEnumerationError(ResolutionDegraded):
    pass


class AttributionUnavailable(ConnExporterError):
    pass


class CommandUnavailable(ConnExporterError):
    pass
