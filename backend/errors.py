class DexboardError(Exception):
    """Base class for errors surfaced to request handlers."""


class PayloadRejected(DexboardError):
    """An upload carried data but lacked the required account fields."""


class PlayerNotFound(DexboardError):
    """No readable snapshot exists for the requested player."""


class ReferenceFetchError(DexboardError):
    """A remote reference file or manifest could not be retrieved."""
