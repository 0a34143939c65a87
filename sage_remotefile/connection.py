"""
TCP session to the media server for a single remote file.

Owns the socket and its buffered reader/writer, performs the transcode/open
handshake, and exposes the three raw transaction shapes the protocol uses:
line-response commands, READ and WRITE. Retrying is the caller's business.
"""

import logging
import socket
from enum import Enum

from . import protocol
from .config import ConnectionConfig, FileConfig, ServerConfig
from .errors import HandshakeError, RemoteConnectionError

logger = logging.getLogger(__name__)


class SessionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    HANDSHAKING = "handshaking"
    OPEN = "open"


class Connection:
    """
    One socket-level session plus the handshake needed to make it usable.
    Not thread-safe; RemoteFile serializes access.
    """

    def __init__(
        self,
        server_config: ServerConfig,
        file_config: FileConfig,
        conn_config: ConnectionConfig,
    ):
        self.server_config = server_config
        self.file_config = file_config
        self.conn_config = conn_config
        self._sock: socket.socket | None = None
        self._rfile = None
        self._wfile = None
        self.state = SessionState.DISCONNECTED

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def connect(self) -> None:
        """
        Open the TCP session and run the handshake.

        Does nothing if a session already exists.

        Raises:
            RemoteConnectionError: If the socket cannot be established or
                fails during the handshake.
            HandshakeError: If the server rejects transcode setup or open.
        """
        if self._sock is not None:
            return

        host, port = self.server_config.host, self.server_config.port
        self.state = SessionState.CONNECTING
        logger.debug("Connecting to media server %s:%d", host, port)

        try:
            sock = socket.create_connection((host, port), timeout=self.conn_config.timeout_seconds)
        except OSError as e:
            self.state = SessionState.DISCONNECTED
            reason = "timed out" if isinstance(e, TimeoutError) else "failed"
            logger.error("Connection to %s:%d %s: %s", host, port, reason, e)
            raise RemoteConnectionError(f"Connection to {host}:{port} {reason}: {e}") from e

        self._sock = sock
        try:
            sock.settimeout(self.conn_config.timeout_seconds)
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            self._rfile = sock.makefile("rb")
            self._wfile = sock.makefile("wb")

            self.state = SessionState.HANDSHAKING
            self._handshake()
        except HandshakeError:
            self.disconnect()
            raise
        except OSError as e:
            self.disconnect()
            logger.error("Handshake with %s:%d failed: %s", host, port, e)
            raise RemoteConnectionError(f"Handshake with {host}:{port} failed: {e}") from e

        self.state = SessionState.OPEN
        logger.info("Opened %s on %s:%d", self.file_config.path, host, port)

    def _handshake(self) -> None:
        """Transcode setup (if configured) followed by the open command."""
        transcode_mode = self.file_config.transcode_mode
        if transcode_mode:
            response = self.transact_line(protocol.transcode_command(transcode_mode))
            if response != protocol.RESPONSE_OK:
                logger.error("Transcode setup %s rejected: %s", transcode_mode, response)
                raise HandshakeError(
                    f"Error with remote transcode setup for {transcode_mode} of: {response}",
                    response,
                )

        upload_id = None if self.file_config.read_only else self.file_config.upload_id
        response = self.transact_line(protocol.open_command(self.file_config.path, upload_id))
        if response != protocol.RESPONSE_OK:
            logger.error("Open of %s rejected: %s", self.file_config.path, response)
            raise HandshakeError(f"Error opening remote file of: {response}", response)

    def disconnect(self) -> None:
        """Send QUIT and close everything. Never raises."""
        if self._wfile is not None:
            try:
                self._wfile.write(protocol.QUIT)
                self._wfile.flush()
            except Exception as e:
                logger.debug("QUIT failed, closing anyway: %s", e)

        for resource in (self._sock, self._wfile, self._rfile):
            if resource is None:
                continue
            try:
                resource.close()
            except Exception as e:
                logger.debug("Ignoring error during close: %s", e)

        if self._sock is not None:
            logger.debug("Session to %s closed", self.server_config.host)
        self._sock = None
        self._rfile = None
        self._wfile = None
        self.state = SessionState.DISCONNECTED

    def reconnect(self) -> None:
        self.disconnect()
        self.connect()

    def _require_session(self):
        if self._sock is None or self._wfile is None or self._rfile is None:
            raise ConnectionResetError("Not connected")
        return self._rfile, self._wfile

    def _send(self, *chunks: bytes) -> None:
        _, wfile = self._require_session()
        for chunk in chunks:
            wfile.write(chunk)
        wfile.flush()

    def transact_line(self, command: bytes) -> str:
        """Send a command and return its one-line response."""
        self._send(command)
        rfile, _ = self._require_session()
        return protocol.read_line(rfile)

    def transact_read(self, offset: int, length: int) -> bytes:
        """Send READ and return exactly length raw bytes."""
        self._send(protocol.read_command(offset, length))
        rfile, _ = self._require_session()
        data = rfile.read(length)
        if data is None or len(data) < length:
            received = 0 if data is None else len(data)
            raise ConnectionResetError(
                f"Connection closed after {received} of {length} bytes at offset {offset}"
            )
        return data

    def transact_write(self, offset: int, payload: bytes) -> None:
        """Send WRITE followed by the payload. The server does not acknowledge."""
        self._send(protocol.write_command(offset, len(payload)), payload)
