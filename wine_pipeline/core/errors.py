"""Error taxonomy for the wine list pipeline."""


class WinePipelineError(Exception):
    """Base class for all pipeline errors."""


class ExtractionFailure(WinePipelineError):
    """A line could not be parsed into a wine candidate."""

    def __init__(self, line: str, reason: str):
        self.line = line
        self.reason = reason
        super().__init__(f"Could not extract a wine from {line[:60]!r}: {reason}")


class DuplicateKeyError(WinePipelineError):
    """Insert violated the restaurant-scoped wine identity."""

    def __init__(
        self,
        restaurant_id: str | None,
        wine_name: str,
        producer: str,
        vintage: str,
    ):
        self.restaurant_id = restaurant_id
        self.wine_name = wine_name
        self.producer = producer
        self.vintage = vintage
        super().__init__(
            f"Wine already exists for restaurant {restaurant_id}: "
            f"{wine_name!r} / {producer!r} / {vintage!r}"
        )


class UpstreamServiceError(WinePipelineError):
    """A language model or verification service call failed."""

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service}: {message}")


class PersistenceError(WinePipelineError):
    """A write to the catalog store failed."""


class ValidationError(WinePipelineError):
    """Caller input was malformed."""


class NotFoundError(WinePipelineError):
    """A requested record does not exist."""
