class MarketScoutError(Exception):
    """Base class for analysis and data-layer failures."""


class InsufficientDataError(MarketScoutError):
    """Raised when a series is shorter than an operation's minimum length."""

    def __init__(self, operation: str, required: int, actual: int):
        self.operation = operation
        self.required = required
        self.actual = actual
        super().__init__(
            f"{operation} needs at least {required} bars, got {actual}"
        )


class DegenerateInputError(MarketScoutError):
    """Raised on a zero denominator or an empty comparison window."""


class ProviderError(MarketScoutError):
    """Opaque failure from a market-data provider."""

    def __init__(self, source: str, identifier: str, reason: str):
        self.source = source
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"{source} failed for {identifier}: {reason}")
