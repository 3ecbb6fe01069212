class ConfigurationError(ValueError):
    """Raised before any growth starts when learner settings do not fit the data."""


class InvariantViolation(AssertionError):
    """Internal consistency failure during growth. Always indicates a bug."""
