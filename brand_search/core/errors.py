"""Search pipeline errors."""


class SearchError(Exception):
    """Base error for the retrieval pipeline."""


class EmbeddingError(SearchError):
    """Query embedding could not be generated. Fatal to the request."""


class StoreError(SearchError):
    """A knowledge store procedure failed."""

    def __init__(self, procedure: str, message: str):
        super().__init__(f"{procedure}: {message}")
        self.procedure = procedure


class RerankError(SearchError):
    """The relevance provider failed or returned unusable scores."""
