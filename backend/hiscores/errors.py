"""Errors raised inside the hiscores core.

None of these ever reach a Socket.IO client: sessions catch them, log them
and degrade to "no update".
"""


class HiscoreError(Exception):
    """Base class for hiscore errors."""


class ValidationFailure(HiscoreError):
    """A submitted result is malformed or does not solve the board."""


class EncodingOverflow(HiscoreError):
    """The timestamp no longer fits into the fractional part of a rank."""


class StoreError(HiscoreError):
    """A read or write against the ranked store failed."""


class StoreUnavailable(StoreError):
    """The store could not be reached.

    `queued` tells whether the write was kept for replay on reconnect.
    """

    def __init__(self, message, queued=False):
        super().__init__(message)
        self.queued = queued


class TransactionFailure(StoreError):
    """The store was reachable but rejected the command or script."""
