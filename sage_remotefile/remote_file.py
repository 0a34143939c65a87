"""
Random-access handle on a file served by a remote media server.

Every transaction goes through one retry policy: on a transport failure the
session is re-established once and the identical command is sent again.
Reads are clamped to the size the server has reported, re-querying it while
the file is still being written.
"""

import logging
import threading
from collections.abc import Callable
from typing import TypeVar

from . import protocol
from .config import ConnectionConfig, FileConfig, ServerConfig
from .connection import Connection
from .errors import ProtocolError, ReadOnlyError, RemoteFileError, TransportError
from .random_access import EOF
from .size_cache import SizeCache

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _check_slice(size: int, offset: int, length: int | None) -> int:
    """Validate a buffer slice and return its resolved length."""
    if length is None:
        length = size - offset
    if offset < 0 or length < 0 or offset + length > size:
        raise ValueError(f"Slice offset={offset} length={length} out of range for {size} bytes")
    return length


class RemoteFile:
    """
    A file on the media server, read and written through a cursor.

    Opening connects and handshakes immediately, so construction fails if
    the server refuses the file. All public methods hold the handle's lock;
    the _*_internal helpers expect the caller to hold it already.
    """

    def __init__(
        self,
        server_config: ServerConfig,
        file_config: FileConfig,
        conn_config: ConnectionConfig | None = None,
    ):
        self.server_config = server_config
        self.file_config = file_config
        self.conn_config = conn_config or ConnectionConfig()
        self._lock = threading.Lock()
        self._connection = Connection(server_config, file_config, self.conn_config)
        self._size = SizeCache(force_active=file_config.force_active)
        self._offset = 0
        self._closed = False

        self._connection.connect()

    def __enter__(self) -> "RemoteFile":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"<RemoteFile {self.server_config.host}:{self.server_config.port} "
            f"{self.file_config.path!r} mode={self.file_config.mode.value}>"
        )

    @property
    def read_only(self) -> bool:
        return self.file_config.read_only

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def active(self) -> bool:
        """True once the remote file has been seen growing (or forced active)."""
        return self._size.active

    @property
    def total_size(self) -> int | None:
        """Declared total size from the last SIZE reply, None before the first one."""
        return self._size.total_size

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("I/O operation on closed remote file")

    def _check_writable(self) -> None:
        if self.file_config.read_only:
            raise ReadOnlyError(f"Remote file is read only: {self.file_config.path}")

    def _with_retry(self, operation: str, func: Callable[[], T]) -> T:
        """
        Run a transaction, reconnecting and retrying it once on transport failure.

        Args:
            operation: Description of the operation for logging.
            func: The transaction. It must be safe to repeat verbatim.

        Returns:
            Result of the transaction.

        Raises:
            TransportError: If the retried attempt fails too.
            RemoteConnectionError, HandshakeError: If the session cannot be
                re-established.
        """
        try:
            return func()
        except RemoteFileError:
            raise
        except OSError as e:
            logger.warning("%s failed, reconnecting: %s", operation, e)

        self._connection.reconnect()

        try:
            return func()
        except RemoteFileError:
            raise
        except OSError as e:
            logger.error("%s failed after reconnect: %s", operation, e)
            raise TransportError(f"{operation} failed: {e}") from e

    def _execute_internal(self, command: bytes) -> str:
        return self._with_retry(
            f"command {command.rstrip()!r}",
            lambda: self._connection.transact_line(command),
        )

    def execute_command(self, command: str | bytes) -> str:
        """
        Send a raw command and return the server's one-line response.

        Text commands get CRLF appended when missing and are sent in the
        protocol's byte charset; bytes are sent unchanged.
        """
        if isinstance(command, str):
            command = protocol.encode_command(command)
        with self._lock:
            self._check_open()
            return self._execute_internal(command)

    # Size cache

    def _refresh_size(self) -> int:
        response = self._execute_internal(protocol.SIZE)
        try:
            available, total = protocol.parse_size_response(response)
        except ValueError as e:
            raise ProtocolError(f"Malformed size response: {response!r}", response) from e
        return self._size.update(available, total)

    def _max_read(self, position: int, count: int) -> int:
        if self._size.needs_refresh(position, count):
            self._refresh_size()
        return self._size.clamp(position, count)

    def length(self) -> int:
        """Length of the remote file, re-queried while the file is active."""
        with self._lock:
            self._check_open()
            if self._size.length_is_stale():
                return self._refresh_size()
            return self._size.max_remote_size

    def available(self) -> int:
        """Bytes readable past the cursor, from cache when the cursor is inside it."""
        with self._lock:
            self._check_open()
            remaining = self._size.cached_remaining(self._offset)
            if remaining is not None:
                return remaining
            return max(0, self._refresh_size() - self._offset)

    def set_length(self, new_length: int) -> None:
        """
        Truncate the remote file.

        Raises:
            ReadOnlyError: On a read-only handle (nothing is sent).
            ProtocolError: If the server refuses; the session is closed and
                the next operation reconnects.
        """
        self._check_writable()
        if new_length < 0:
            raise ValueError(f"Negative length: {new_length}")
        with self._lock:
            self._check_open()
            response = self._execute_internal(protocol.truncate_command(new_length))
            if response != protocol.RESPONSE_OK:
                self._connection.disconnect()
                raise ProtocolError(f"Error truncating remote file of: {response}", response)
            self._size.truncate(new_length)
            logger.debug("Truncated %s to %d bytes", self.file_config.path, new_length)

    def _sync_internal(self) -> None:
        response = self._execute_internal(protocol.FORCE)
        if response != protocol.RESPONSE_OK:
            raise ProtocolError(f"Error forcing remote file of: {response}", response)

    def sync(self) -> None:
        """Ask the server to flush data and metadata. No-op when read-only."""
        if self.file_config.read_only:
            return
        with self._lock:
            self._check_open()
            self._sync_internal()

    def flush(self) -> None:
        # Nothing is buffered above the socket writer, which flushes per command.
        self._check_open()

    # Reading

    def _read_internal(self, buffer, offset: int, length: int) -> int:
        self._check_open()
        if length == 0:
            return 0

        length = self._max_read(self._offset, length)
        if length == 0:
            return EOF

        position = self._offset
        data = self._with_retry(
            f"read({position}, {length})",
            lambda: self._connection.transact_read(position, length),
        )
        buffer[offset : offset + length] = data
        self._offset += length
        return length

    def read(self, buffer: bytearray | memoryview, offset: int = 0, length: int | None = None) -> int:
        """
        Read up to length bytes at the cursor into buffer[offset:].

        Args:
            buffer: Writable buffer.
            offset: Start position inside buffer.
            length: Maximum bytes to read (defaults to the rest of buffer).

        Returns:
            Bytes read, 0 when length is 0, or EOF (-1) when no data is
            available at the cursor.
        """
        length = _check_slice(len(buffer), offset, length)
        with self._lock:
            return self._read_internal(buffer, offset, length)

    def read_byte(self) -> int:
        """Read a single byte, returning 0-255 or EOF."""
        buffer = bytearray(1)
        with self._lock:
            if self._read_internal(buffer, 0, 1) == EOF:
                return EOF
        return buffer[0]

    def read_fully(
        self, buffer: bytearray | memoryview, offset: int = 0, length: int | None = None
    ) -> None:
        """
        Fill buffer[offset:offset + length] completely.

        Raises:
            EOFError: If the remote file ends before length bytes were read.
        """
        length = _check_slice(len(buffer), offset, length)
        with self._lock:
            while length > 0:
                count = self._read_internal(buffer, offset, length)
                if count == EOF:
                    raise EOFError(f"End of file reached at offset {self._offset}")
                length -= count
                offset += count

    def skip(self, n: int) -> int:
        """Move the cursor forward by up to n readable bytes without reading them."""
        if n <= 0:
            return 0
        with self._lock:
            self._check_open()
            count = self._max_read(self._offset, n)
            self._offset += count
            return count

    def seek(self, pos: int) -> None:
        """Set the cursor. Positions past the end surface as EOF on the next read."""
        if pos < 0:
            raise ValueError(f"Negative seek position: {pos}")
        with self._lock:
            self._check_open()
            self._offset = pos

    def position(self) -> int:
        with self._lock:
            return self._offset

    # Writing

    def _write_internal(self, data, offset: int, length: int) -> None:
        self._check_open()
        self._check_writable()
        if length == 0:
            return

        payload = bytes(data[offset : offset + length])
        position = self._offset
        self._with_retry(
            f"write({position}, {length})",
            lambda: self._connection.transact_write(position, payload),
        )
        self._offset += length

        if self.file_config.sync_writes:
            self._sync_internal()

    def write(self, data: bytes, offset: int = 0, length: int | None = None) -> None:
        """
        Write data[offset:offset + length] at the cursor and advance it.

        The server sends no acknowledgement; use sync() (or sync_writes) to
        observe failures on the server side.

        Raises:
            ReadOnlyError: On a read-only handle (nothing is sent).
        """
        self._check_writable()
        length = _check_slice(len(data), offset, length)
        with self._lock:
            self._write_internal(data, offset, length)

    def write_byte(self, value: int) -> None:
        self._check_writable()
        payload = bytes((value & 0xFF,))
        with self._lock:
            self._write_internal(payload, 0, 1)

    def random_write(self, pos: int, data: bytes, offset: int = 0, length: int | None = None) -> None:
        """Write at pos and leave the cursor where it was, whether or not the write succeeds."""
        self._check_writable()
        if pos < 0:
            raise ValueError(f"Negative write position: {pos}")
        length = _check_slice(len(data), offset, length)
        with self._lock:
            saved = self._offset
            self._offset = pos
            try:
                self._write_internal(data, offset, length)
            finally:
                self._offset = saved

    def close(self) -> None:
        """Close the session. Further I/O raises ValueError."""
        with self._lock:
            if self._closed:
                return
            self._connection.disconnect()
            self._closed = True
            logger.debug("Closed %s", self.file_config.path)
