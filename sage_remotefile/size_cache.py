import logging

logger = logging.getLogger(__name__)


class SizeCache:
    """
    Known size of a remote file and whether it is still growing.

    max_remote_size is a high-water mark of the available byte count reported
    by SIZE; it only goes down through truncate(). Once a file has been seen
    growing (available != total) it stays active for the life of the handle,
    and every read near the cached end triggers a fresh SIZE query.
    """

    def __init__(self, force_active: bool = False):
        self.force_active = force_active
        self.max_remote_size: int | None = None
        self.total_size: int | None = None
        self._active = force_active

    @property
    def active(self) -> bool:
        return self._active

    @property
    def known(self) -> bool:
        return self.max_remote_size is not None

    def update(self, available: int, total: int) -> int:
        """Record a SIZE reply and return the new high-water mark."""
        previous = self.max_remote_size
        self.max_remote_size = available if previous is None else max(previous, available)
        self.total_size = total

        if not self._active and (available != total or self.force_active):
            logger.debug("Remote file is active (available=%d, total=%d)", available, total)
            self._active = True

        if previous is not None and self.max_remote_size > previous:
            logger.debug("Remote file grew from %d to %d bytes", previous, self.max_remote_size)
        return self.max_remote_size

    def truncate(self, new_length: int) -> None:
        self.max_remote_size = new_length

    def length_is_stale(self) -> bool:
        """True when length() cannot be answered from the cache."""
        return not self.known or self._active

    def needs_refresh(self, position: int, count: int) -> bool:
        """True when a read of count bytes at position must re-query SIZE first."""
        if not self.known:
            return True
        return self._active and position + count >= self.max_remote_size

    def clamp(self, position: int, count: int) -> int:
        """Bound count to the bytes known to exist past position, never below zero."""
        known_available = self.max_remote_size or 0
        return max(0, min(count, known_available - position))

    def cached_remaining(self, position: int) -> int | None:
        """Bytes left after position if the cache can tell, otherwise None."""
        if self.known and position < self.max_remote_size:
            return self.max_remote_size - position
        return None
