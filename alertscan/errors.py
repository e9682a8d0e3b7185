from __future__ import annotations


class AlertScanError(Exception):
    pass


class TargetUnavailable(AlertScanError):
    """The top-level target, a directory, or the sink could not be opened."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        msg = f"{path}: {reason}" if reason else path
        super().__init__(msg)


class EventSourceError(AlertScanError):
    pass


class RegistryError(AlertScanError):
    pass


class ConfigError(AlertScanError):
    pass
