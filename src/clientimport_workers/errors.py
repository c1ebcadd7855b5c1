"""
Exceptions raised by the import core

Only caller programming errors raise. Bad cell values, unusable headers and
cross-field conflicts are reported as data (guesses, issues, duplicates),
never as exceptions.
"""


class ImportCoreError(Exception):
    """Base class for errors raised by the import core"""


class UnknownFieldError(ImportCoreError, ValueError):
    """Raised when a caller names a field outside the canonical set"""

    def __init__(self, value):
        super().__init__(f"Unknown canonical field: {value!r}")
        self.value = value


class InvalidConfigurationError(ImportCoreError, ValueError):
    """Raised for inconsistent weights, thresholds or policies"""

    def __init__(self, message: str, setting: str = None):
        super().__init__(message)
        self.setting = setting
