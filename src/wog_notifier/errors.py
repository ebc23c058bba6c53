from __future__ import annotations


class WogNotifierError(RuntimeError):
    pass


class SourceFetchError(WogNotifierError):
    """A feed URL could not be fetched or answered with a non-2xx status."""

    def __init__(self, source_id: str, message: str) -> None:
        super().__init__(f"Fetch failed for {source_id}: {message}")
        self.source_id = source_id


class SourceParseError(WogNotifierError):
    """A payload was not a readable XML document."""

    def __init__(self, source_id: str, message: str) -> None:
        super().__init__(f"Parse failed for {source_id}: {message}")
        self.source_id = source_id


class ConfigurationError(WogNotifierError):
    pass


class UnrecoverableRunError(WogNotifierError):
    pass
