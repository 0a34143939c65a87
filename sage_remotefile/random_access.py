"""
Random-access file protocol definition.

Describes the capability RemoteFile provides, so code that consumes a
seekable byte source (players, remuxers, uploaders) can accept any
implementation with the same shape.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

EOF = -1


@runtime_checkable
class RandomAccessFile(Protocol):
    """Protocol for a seekable, optionally writable byte file with a cursor."""

    @property
    def read_only(self) -> bool:
        """True if writes and truncation are refused."""
        ...

    def read(self, buffer: bytearray | memoryview, offset: int = 0, length: int | None = None) -> int:
        """Read up to length bytes at the cursor into buffer[offset:].

        Returns:
            Number of bytes read, 0 if length is 0, or EOF at end of stream.
        """
        ...

    def read_byte(self) -> int:
        """Read one byte at the cursor, returning 0-255 or EOF."""
        ...

    def read_fully(
        self, buffer: bytearray | memoryview, offset: int = 0, length: int | None = None
    ) -> None:
        """Read exactly length bytes.

        Raises:
            EOFError: If the stream ends first.
        """
        ...

    def write(self, data: bytes, offset: int = 0, length: int | None = None) -> None:
        """Write data[offset:offset + length] at the cursor."""
        ...

    def write_byte(self, value: int) -> None:
        """Write one byte at the cursor."""
        ...

    def random_write(self, pos: int, data: bytes, offset: int = 0, length: int | None = None) -> None:
        """Write at pos without moving the cursor."""
        ...

    def skip(self, n: int) -> int:
        """Advance the cursor by up to n bytes, returning the distance moved."""
        ...

    def seek(self, pos: int) -> None:
        """Move the cursor to pos."""
        ...

    def position(self) -> int:
        """Current cursor offset."""
        ...

    def length(self) -> int:
        """Current file length."""
        ...

    def available(self) -> int:
        """Bytes that can be read past the cursor right now."""
        ...

    def set_length(self, new_length: int) -> None:
        """Truncate or extend the file."""
        ...

    def sync(self) -> None:
        """Force data and metadata to stable storage."""
        ...

    def flush(self) -> None:
        """Flush buffered writes."""
        ...

    def close(self) -> None:
        """Release the file."""
        ...
