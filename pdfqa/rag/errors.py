"""Exceptions raised by the question-answering pipeline."""


class ConfigurationError(RuntimeError):
    """Required service credentials or endpoints are missing or invalid."""


class IngestionError(ValueError):
    """A PDF could not be turned into indexable chunks."""


class GenerationError(RuntimeError):
    """The language model call failed."""


class RateLimitError(GenerationError):
    """The language model rejected the call because of rate limiting or quota."""


class EmptyGenerationError(GenerationError):
    """The language model call succeeded but produced no answer text."""


_RATE_LIMIT_MARKERS = ("429", "rate limit", "rate_limit", "too many requests", "quota")


def is_rate_limit_message(message: str) -> bool:
    """Return True when an error message looks like a rate-limit or quota rejection."""
    lowered = message.lower()
    return any(marker in lowered for marker in _RATE_LIMIT_MARKERS)
