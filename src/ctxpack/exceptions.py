"""Custom exceptions for ctxpack."""


class CtxPackError(Exception):
    """Base exception for all ctxpack errors."""


class ConfigError(CtxPackError):
    """Configuration-related errors."""


class StoreError(CtxPackError):
    """Knowledge store errors."""


class AssemblyError(CtxPackError):
    """Errors that abort a context assembly call."""


class RetrievalError(AssemblyError):
    """Raised when a collaborator (retrieval or similarity) fails or times out."""


class InvalidBudgetError(AssemblyError):
    """Raised when the requested token budget is below the floor or cannot hold the envelope."""

    def __init__(self, max_tokens: int, minimum: int):
        self.max_tokens = max_tokens
        self.minimum = minimum
        super().__init__(
            f"Token budget {max_tokens} is invalid; at least {minimum} tokens are required."
        )
