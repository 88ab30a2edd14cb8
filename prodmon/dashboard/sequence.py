"""
Latest-request-wins bookkeeping for overlapping fetches
"""


class RequestSequence:
    """
    Monotonic request counter.

    A store takes a ticket with ``next()`` before awaiting a remote call and
    only applies the outcome if ``is_current(ticket)`` still holds, so a slow
    response never overwrites state produced by a newer request.
    """

    def __init__(self):
        self._current = 0

    @property
    def current(self) -> int:
        return self._current

    def next(self) -> int:
        self._current += 1
        return self._current

    def is_current(self, ticket: int) -> bool:
        return ticket == self._current

    def invalidate(self) -> None:
        """Make every outstanding ticket stale"""
        self._current += 1
