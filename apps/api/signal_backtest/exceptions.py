"""
Errors raised by the backtest core.

Each carries the HTTP status and a stable code so the API layer can render it
without knowing the concrete type.
"""


class BacktestError(Exception):
    """Base exception for the backtest service."""

    status_code = 500
    code = "backtest_error"

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra


class BacktestValidationError(BacktestError):
    """Request rejected before any I/O: blank symbol, bad date range, bad thresholds."""

    status_code = 400
    code = "validation_error"


class DataSourceError(BacktestError):
    """A price or signal collaborator failed. Nothing from the run was persisted."""

    status_code = 502
    code = "data_source_error"


class PerformanceNotRecordedError(BacktestError):
    """The run was computed but its performance rows could not be saved."""

    status_code = 500
    code = "performance_not_recorded"

    def __init__(self, message: str, result=None, **extra):
        super().__init__(message, **extra)
        self.result = result
