from __future__ import annotations


class MonitorError(Exception):
    pass


class FatalError(MonitorError):
    """Aborts the whole run; there is no partial-config mode."""


class ConfigError(FatalError):
    pass


class TargetListError(FatalError):
    pass


class StateStoreError(FatalError):
    pass


class LogSetupError(FatalError):
    pass


class NotifierAuthError(FatalError):
    pass


class ProbeError(MonitorError):
    pass


class ProbeTimeout(ProbeError):
    pass
