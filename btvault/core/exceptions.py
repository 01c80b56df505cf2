class BtVaultError(Exception):
    """Base class for all btvault exceptions."""


class ConfigError(BtVaultError):
    """Raised for missing/malformed configuration."""


class ArchiveError(BtVaultError):
    """Raised when a result archive cannot be read or written."""


class ResultDecodeError(BtVaultError):
    """Raised when a result document fails JSON or schema validation."""


__all__ = [
    "BtVaultError",
    "ConfigError",
    "ArchiveError",
    "ResultDecodeError",
]
