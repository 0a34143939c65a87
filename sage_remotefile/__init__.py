__version__ = "0.1.0"

# Public API exports
from .config import (
    AppConfig,
    ConnectionConfig,
    FileConfig,
    LogConfig,
    OpenMode,
    ServerConfig,
    load_config,
)
from .connection import Connection, SessionState
from .errors import (
    HandshakeError,
    ProtocolError,
    ReadOnlyError,
    RemoteConnectionError,
    RemoteFileError,
    TransportError,
)
from .random_access import EOF, RandomAccessFile
from .remote_file import RemoteFile
from .size_cache import SizeCache


def open_remote(
    host: str,
    path: str,
    upload_id: int | None = None,
    transcode_mode: str | None = None,
    force_active: bool = False,
    port: int = ServerConfig.port,
    timeout_seconds: float = ConnectionConfig.timeout_seconds,
) -> RemoteFile:
    """Open a remote file, choosing the mode from the arguments given.

    An upload_id opens for read-write; otherwise the file is read-only,
    optionally transcoded or forced active. Combining upload_id with
    transcode_mode or force_active raises ValueError.
    """
    if upload_id is not None:
        if transcode_mode or force_active:
            raise ValueError("A writable file cannot be transcoded or forced active")
        file_config = FileConfig.read_write(path, upload_id)
    elif transcode_mode:
        if force_active:
            raise ValueError("A transcoded file cannot be forced active")
        file_config = FileConfig.transcode(path, transcode_mode)
    elif force_active:
        file_config = FileConfig.forced_active(path)
    else:
        file_config = FileConfig.for_reading(path)

    return RemoteFile(
        ServerConfig(host=host, port=port),
        file_config,
        ConnectionConfig(timeout_seconds=timeout_seconds),
    )


__all__ = [
    "__version__",
    # Configuration
    "AppConfig",
    "ServerConfig",
    "ConnectionConfig",
    "FileConfig",
    "OpenMode",
    "LogConfig",
    "load_config",
    # Client
    "RemoteFile",
    "RandomAccessFile",
    "EOF",
    "open_remote",
    "Connection",
    "SessionState",
    "SizeCache",
    # Errors
    "RemoteFileError",
    "RemoteConnectionError",
    "HandshakeError",
    "ProtocolError",
    "TransportError",
    "ReadOnlyError",
]
