"""Errors raised by the exercise core and its collaborators."""


class SweepError(Exception):
    """Base class for all sweepbot errors."""


class ValidationError(SweepError, ValueError):
    """User input was rejected (empty text, nothing to practise)."""


class ConfigurationError(SweepError, ValueError):
    """Session configuration or a shared payload could not be used."""


class EnvironmentUnavailableError(SweepError, RuntimeError):
    """A speech or export back end is not available right now."""
