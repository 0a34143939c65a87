"""
Shared pytest fixtures for sage-remotefile tests.

FakeMediaServer speaks the media server file protocol well enough to drive
the client end to end: it serves in-memory files, lets tests script SIZE
replies and error responses, and can drop the connection on chosen commands.
"""

import socketserver
import threading
import time
from collections.abc import Generator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from sage_remotefile.config import ConnectionConfig, FileConfig, ServerConfig
from sage_remotefile.connection import Connection
from sage_remotefile.remote_file import RemoteFile

BYTE_CHARSET = "iso-8859-1"


class FakeMediaServer:
    """In-process media server holding its files in memory."""

    def __init__(self):
        self.files: dict[str, bytearray] = {}
        self.sizes: dict[str, tuple[int, int]] = {}
        self.responses: dict[str, str] = {}
        self.commands: list[str] = []
        self.connections = 0
        self._drops: dict[str, int] = {}
        self._lock = threading.Lock()
        self._server: socketserver.ThreadingTCPServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def host(self) -> str:
        return self._server.server_address[0]

    @property
    def port(self) -> int:
        return self._server.server_address[1]

    def start(self) -> None:
        self._server = _ThreadedTCPServer(("127.0.0.1", 0), _MediaRequestHandler)
        self._server.media = self
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None

    def add_file(self, path: str, data: bytes) -> None:
        with self._lock:
            self.files[path] = bytearray(data)

    def set_sizes(self, path: str, available: int, total: int) -> None:
        """Override the SIZE reply for path, e.g. to mimic a recording in progress."""
        with self._lock:
            self.sizes[path] = (available, total)

    def drop_next(self, verb: str, count: int = 1) -> None:
        """Close the connection instead of answering the next count commands with this verb."""
        with self._lock:
            self._drops[verb] = self._drops.get(verb, 0) + count

    def count(self, command: str) -> int:
        return sum(1 for c in self.commands if c == command or c.startswith(command + " "))

    def wait_for(self, predicate, timeout: float = 2.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()

    def _record(self, command: str) -> None:
        with self._lock:
            self.commands.append(command)

    def _should_drop(self, verb: str) -> bool:
        with self._lock:
            remaining = self._drops.get(verb, 0)
            if remaining > 0:
                self._drops[verb] = remaining - 1
                return True
            return False

    def _size_of(self, path: str) -> tuple[int, int]:
        with self._lock:
            if path in self.sizes:
                return self.sizes[path]
            length = len(self.files.get(path, b""))
            return length, length


class _ThreadedTCPServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True


class _MediaRequestHandler(socketserver.StreamRequestHandler):
    def handle(self):
        media: FakeMediaServer = self.server.media
        with media._lock:
            media.connections += 1
        try:
            self._serve(media)
        except OSError:
            pass

    def _reply(self, text: str) -> None:
        self.wfile.write((text + "\r\n").encode(BYTE_CHARSET))

    def _serve(self, media: FakeMediaServer) -> None:
        path = None
        while True:
            raw = self.rfile.readline()
            if not raw:
                return
            line = raw[:-2] if raw.endswith(b"\r\n") else raw.rstrip(b"\n")
            verb = line.split(b" ", 1)[0].decode(BYTE_CHARSET)

            if verb == "OPENW":
                name = line[len(b"OPENW ") :].decode("utf-16-be")
                media._record(f"OPENW {name}")
            elif verb == "WRITEOPENW":
                name_bytes, upload_id = line[len(b"WRITEOPENW ") :].rsplit(b" ", 1)
                name = name_bytes.decode("utf-16-be")
                media._record(f"WRITEOPENW {name} {upload_id.decode(BYTE_CHARSET)}")
            else:
                media._record(line.decode(BYTE_CHARSET))

            if media._should_drop(verb):
                return

            args = line.decode(BYTE_CHARSET).split()[1:] if verb not in ("OPENW", "WRITEOPENW") else []

            if verb == "XCODE_SETUP":
                self._reply(media.responses.get("XCODE_SETUP", "OK"))
            elif verb == "OPENW":
                default = "OK" if name in media.files else "FILE_DOES_NOT_EXIST"
                response = media.responses.get("OPENW", default)
                if response == "OK":
                    path = name
                self._reply(response)
            elif verb == "WRITEOPENW":
                response = media.responses.get("WRITEOPENW", "OK")
                if response == "OK":
                    path = name
                    with media._lock:
                        media.files.setdefault(name, bytearray())
                self._reply(response)
            elif verb == "READ":
                offset, length = int(args[0]), int(args[1])
                with media._lock:
                    data = bytes(media.files[path][offset : offset + length])
                self.wfile.write(data.ljust(length, b"\x00"))
            elif verb == "WRITE":
                offset, length = int(args[0]), int(args[1])
                payload = self.rfile.read(length)
                with media._lock:
                    content = media.files[path]
                    if len(content) < offset:
                        content.extend(b"\x00" * (offset - len(content)))
                    content[offset : offset + length] = payload
            elif verb == "SIZE":
                if "SIZE" in media.responses:
                    self._reply(media.responses["SIZE"])
                else:
                    available, total = media._size_of(path)
                    self._reply(f"{available} {total}")
            elif verb == "TRUNC":
                response = media.responses.get("TRUNC", "OK")
                if response == "OK":
                    new_length = int(args[0])
                    with media._lock:
                        content = media.files[path]
                        del content[new_length:]
                        content.extend(b"\x00" * (new_length - len(content)))
                        media.sizes.pop(path, None)
                self._reply(response)
            elif verb == "FORCE":
                self._reply(media.responses.get("FORCE", "OK"))
            elif verb == "QUIT":
                return
            else:
                self._reply("UNKNOWN_COMMAND")


@pytest.fixture
def media_server() -> Generator[FakeMediaServer, None, None]:
    """
    Start a FakeMediaServer on an ephemeral localhost port.

    Yields:
        The running server; it is shut down after the test.
    """
    server = FakeMediaServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def server_config(media_server: FakeMediaServer) -> ServerConfig:
    """ServerConfig pointing at the fake media server."""
    return ServerConfig(host=media_server.host, port=media_server.port)


@pytest.fixture
def conn_config() -> ConnectionConfig:
    """ConnectionConfig with a short timeout for tests."""
    return ConnectionConfig(timeout_seconds=5)


@pytest.fixture
def recording(media_server: FakeMediaServer) -> bytes:
    """A 1000-byte file at /tv/Recording.mpg on the fake server."""
    data = bytes(range(256)) * 3 + bytes(range(232))
    media_server.add_file("/tv/Recording.mpg", data)
    return data


@pytest.fixture
def open_file(server_config: ServerConfig, conn_config: ConnectionConfig):
    """Factory opening RemoteFile handles against the fake server; closes them afterwards."""
    handles: list[RemoteFile] = []

    def _open(file_config: FileConfig) -> RemoteFile:
        handle = RemoteFile(server_config, file_config, conn_config)
        handles.append(handle)
        return handle

    yield _open

    for handle in handles:
        handle.close()


@pytest.fixture
def mock_connection() -> MagicMock:
    """A mocked Connection with every transaction stubbed."""
    mock = MagicMock(spec=Connection)
    mock.transact_line.return_value = "OK"
    mock.transact_read.return_value = b""
    mock.transact_write.return_value = None
    return mock


@pytest.fixture
def make_mocked_file(mock_connection: MagicMock):
    """
    Factory creating a RemoteFile whose Connection is mock_connection.

    Returns:
        Callable taking a FileConfig and returning the RemoteFile.
    """

    def _make(file_config: FileConfig) -> RemoteFile:
        with patch("sage_remotefile.remote_file.Connection", return_value=mock_connection):
            return RemoteFile(ServerConfig(host="media.test.local"), file_config)

    return _make


@pytest.fixture
def tmp_config_file(tmp_path: Path) -> Generator[Path, None, None]:
    """
    Creates a temporary INI configuration file for config tests.

    Returns:
        Path to the temporary config file.
    """
    config_content = """[server]
host = mediaserver.local
port = 17818

[connection]
timeout_seconds = 12.5

[logging]
level = DEBUG
file = test.log
console = false
"""
    config_path = tmp_path / "test_config.ini"
    config_path.write_text(config_content, encoding="utf-8")
    yield config_path
