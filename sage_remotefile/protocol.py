"""
Wire format for the media server file protocol.

Commands are single CRLF-terminated lines. Verbs and numeric fields are
encoded with a fixed single-byte charset; file paths travel as UTF-16BE.
READ replies carry raw bytes with no line framing, and WRITE payloads follow
their command line immediately.
"""

from __future__ import annotations

from typing import BinaryIO

from .errors import ProtocolError

DEFAULT_PORT = 7818

BYTE_CHARSET = "iso-8859-1"
PATH_CHARSET = "utf-16-be"
CRLF = "\r\n"

RESPONSE_OK = "OK"

# Upper bound on a response line; replies are short status or size strings.
MAX_LINE_LENGTH = 8192

SIZE = b"SIZE\r\n"
FORCE = b"FORCE TRUE\r\n"
QUIT = b"QUIT\r\n"


def encode_command(command: str) -> bytes:
    """Encode a text command, appending CRLF if it is missing."""
    if not command.endswith(CRLF):
        command += CRLF
    return command.encode(BYTE_CHARSET)


def transcode_command(mode: str) -> bytes:
    return encode_command(f"XCODE_SETUP {mode}")


def open_command(path: str, upload_id: int | None = None) -> bytes:
    """
    Build the open command for a remote path.

    Without an upload id this is the read-only OPENW form; with one it is
    WRITEOPENW with the id appended after the path.
    """
    encoded_path = path.encode(PATH_CHARSET)
    if upload_id is None:
        return b"OPENW " + encoded_path + CRLF.encode(BYTE_CHARSET)
    return (
        b"WRITEOPENW "
        + encoded_path
        + f" {upload_id}".encode(BYTE_CHARSET)
        + CRLF.encode(BYTE_CHARSET)
    )


def read_command(offset: int, length: int) -> bytes:
    return encode_command(f"READ {offset} {length}")


def write_command(offset: int, length: int) -> bytes:
    return encode_command(f"WRITE {offset} {length}")


def truncate_command(length: int) -> bytes:
    return encode_command(f"TRUNC {length}")


def read_line(stream: BinaryIO) -> str:
    """
    Read one CRLF-terminated response line.

    Args:
        stream: Buffered binary input stream of the session.

    Returns:
        The decoded line without its line terminator.

    Raises:
        ConnectionResetError: If the server closed the connection first.
        ProtocolError: If the line exceeds MAX_LINE_LENGTH.
    """
    line = stream.readline(MAX_LINE_LENGTH + 1)
    if not line:
        raise ConnectionResetError("Connection closed by server")
    if not line.endswith(b"\n"):
        if len(line) > MAX_LINE_LENGTH:
            raise ProtocolError("Response line too long")
        raise ConnectionResetError("Connection closed in the middle of a response")
    return line.rstrip(b"\r\n").decode(BYTE_CHARSET)


def parse_size_response(response: str) -> tuple[int, int]:
    """
    Parse a SIZE reply of the form "<available> <total>".

    Raises:
        ValueError: If the reply does not hold two non-negative integers.
    """
    parts = response.split()
    if len(parts) != 2:
        raise ValueError(f"Expected '<available> <total>', got {response!r}")
    available, total = int(parts[0]), int(parts[1])
    if available < 0 or total < 0:
        raise ValueError(f"Negative size in {response!r}")
    return available, total
