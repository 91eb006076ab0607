"""
Custom error classes for Pipeline Commitment Analytics.
Structured error handling with error codes across all modules.

Hierarchy:
    AnalyticsError
    ├── DataError
    │   ├── ConfigError
    │   ├── EmptyInputError
    │   └── RecordLoadError
    └── CacheError

Individual malformed records never raise: normalizers degrade them to
empty-string / zero sentinels. The only engine-level failure is
EmptyInputError, raised once when neither input produced a usable record.
"""


class AnalyticsError(Exception):
    """Base exception for all pipeline analytics errors."""

    def __init__(self, message: str, code: str = "UNKNOWN", details: dict = None):
        self.code = code
        self.details = details or {}
        super().__init__(f"[{code}] {message}")


# --- Data Errors ---

class DataError(AnalyticsError):
    """Base class for data processing errors."""
    pass


class ConfigError(DataError):
    """Configuration file error."""

    def __init__(self, message: str, config_path: str = None):
        super().__init__(
            message, code="CONFIG_ERROR",
            details={"config_path": config_path},
        )


class EmptyInputError(DataError):
    """Neither the opportunity nor the commitment input held a usable record."""

    def __init__(self, opportunities: int = 0, commitments: int = 0):
        super().__init__(
            "No usable records found in the opportunity or commitment input",
            code="NO_USABLE_RECORDS",
            details={"opportunities": opportunities, "commitments": commitments},
        )


class RecordLoadError(DataError):
    """Failed to read a record export from disk."""

    def __init__(self, message: str, source: str = None):
        super().__init__(
            message, code="RECORD_LOAD_FAILED", details={"source": source},
        )


# --- Cache Errors ---

class CacheError(AnalyticsError):
    """Result cache could not be read or written."""

    def __init__(self, message: str, cache_path: str = None):
        super().__init__(
            message, code="CACHE_ERROR", details={"cache_path": cache_path},
        )
