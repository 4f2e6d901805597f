"""
Exceptions raised outside the reconciliation core.

The core itself (normalizer, merger, policy, risk, comparison, alerts)
treats bad records as data-quality signals and never raises.
"""


class HarmonizerError(Exception):
    """Base exception for inventory-harmonizer errors."""
    pass


class ConfigError(HarmonizerError):
    """Configuration missing or invalid."""
    pass


class AdapterError(HarmonizerError):
    """A source adapter could not produce its endpoint list."""

    def __init__(self, source, message: str):
        self.source = source
        super().__init__(f"{getattr(source, 'value', source)}: {message}")


class StorageError(HarmonizerError):
    """Reading or writing the reconciliation store failed."""
    pass


class RosterValidationError(HarmonizerError):
    """Terminated-employee roster entry failed validation."""
    pass
