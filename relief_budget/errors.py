"""
Exception taxonomy shared by the sanitizers, the forecast clients and
the batch runner.
"""


class ReliefBudgetError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(ReliefBudgetError, ValueError):
    """Malformed or empty input file.  No state is changed."""


class PreconditionError(ReliefBudgetError):
    """An action was requested in a state that cannot serve it."""


class AdapterError(ReliefBudgetError, RuntimeError):
    """The external forecasting capability failed to produce a result."""
