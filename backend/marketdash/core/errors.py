from __future__ import annotations


class EngineError(RuntimeError):
    """Base class for recoverable live-order engine failures."""

    code = "ENGINE_ERROR"


class FetchFailure(EngineError):
    """A poll cycle could not retrieve the order collection."""

    code = "FETCH_FAILURE"


class LookupNotFound(EngineError, LookupError):
    """A store record could not be resolved (missing or lookup error)."""

    code = "LOOKUP_NOT_FOUND"


class PersistenceFailure(EngineError):
    """A notification or order write did not reach the document store."""

    code = "PERSISTENCE_FAILURE"
