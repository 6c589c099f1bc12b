"""Exception types raised or recorded by reflex-datatable."""


class DataTableError(Exception):
    """Base class for all reflex-datatable errors."""


class ExportError(DataTableError):
    """An export could not be produced (missing backend or render failure)."""


class RemoteFetchError(DataTableError):
    """A remote page could not be fetched or its response was malformed.

    Never raised into caller code by the pipeline: it is recorded on the
    adapter and surfaced through ``TableSnapshot.error``.
    """

    def __init__(self, message: str, request: object | None = None) -> None:
        super().__init__(message)
        self.request = request
