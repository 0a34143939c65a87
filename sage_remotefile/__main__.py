"""
sage-remotefile - Main Entry Point

Command-line access to files on a media server: copy them down, upload
into them, query their size and truncate them.
"""

import argparse
import logging
import sys
from pathlib import Path

from .config import AppConfig, FileConfig, load_config
from .errors import HandshakeError, ProtocolError, RemoteConnectionError, RemoteFileError
from .logger import setup_logging
from .random_access import EOF
from .remote_file import RemoteFile

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="sage-remotefile",
        description="sage-remotefile - Access files on a media server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  sage-remotefile get /tv/News-1234.mpg --host 192.168.0.20 --output news.mpg
  sage-remotefile get /tv/Live-5678.ts --host mediaserver --force-active > live.ts
  sage-remotefile put clip.mpg /tv/clip.mpg --host mediaserver --upload-id 4242
  sage-remotefile size /tv/News-1234.mpg --config client.ini
  sage-remotefile truncate /tv/clip.mpg 0 --host mediaserver --upload-id 4242
        """,
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", help="Path to configuration file")
    common.add_argument("--host", help="Media server host")
    common.add_argument("--port", type=int, help="Media server port (default: 7818)")
    common.add_argument("--timeout", type=float, help="Socket timeout in seconds")
    common.add_argument("--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    get_parser = subparsers.add_parser("get", parents=[common], help="Download a remote file")
    get_parser.add_argument("remote", help="Remote path")
    get_parser.add_argument("--output", "-o", help="Local file to write (default: stdout)")
    get_parser.add_argument("--transcode", help="Server-side transcode mode")
    get_parser.add_argument(
        "--force-active", action="store_true", help="Treat the file as still being written"
    )
    get_parser.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE)

    put_parser = subparsers.add_parser("put", parents=[common], help="Upload into a remote file")
    put_parser.add_argument("local", help="Local file to upload")
    put_parser.add_argument("remote", help="Remote path")
    put_parser.add_argument("--upload-id", type=int, required=True, help="Upload authorization id")
    put_parser.add_argument("--offset", type=int, default=0, help="Remote offset to write at")
    put_parser.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE)

    size_parser = subparsers.add_parser("size", parents=[common], help="Show remote file size")
    size_parser.add_argument("remote", help="Remote path")
    size_parser.add_argument(
        "--force-active", action="store_true", help="Treat the file as still being written"
    )

    trunc_parser = subparsers.add_parser(
        "truncate", parents=[common], help="Set the length of a remote file"
    )
    trunc_parser.add_argument("remote", help="Remote path")
    trunc_parser.add_argument("length", type=int, help="New length in bytes")
    trunc_parser.add_argument("--upload-id", type=int, required=True, help="Upload authorization id")

    return parser.parse_args(argv)


def _load(args) -> AppConfig:
    config = load_config(
        config_path=args.config,
        host=args.host,
        port=args.port,
        timeout=args.timeout,
        debug=args.verbose,
    )
    setup_logging(config.logging)
    from . import __version__

    logger.info("Starting sage-remotefile v%s (%s)", __version__, args.command)
    return config


def _open(config: AppConfig, file_config: FileConfig) -> RemoteFile:
    logger.info(
        "Opening %s on %s:%d", file_config.path, config.server.host, config.server.port
    )
    return RemoteFile(config.server, file_config, config.connection)


def _run(args, action) -> int:
    """Load configuration, run action(config), and map errors to exit codes."""
    try:
        config = _load(args)
    except ValueError as e:
        print(f"[ERROR] Configuration error: {e}", file=sys.stderr)
        return 1
    except FileNotFoundError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1

    server_desc = f"{config.server.host}:{config.server.port}"
    try:
        return action(config)
    except RemoteConnectionError as e:
        logger.error("Failed to connect to server: %s", e)
        print(f"[ERROR] Could not connect to media server at {server_desc}", file=sys.stderr)
        print(f"        {e}", file=sys.stderr)
        return 1
    except HandshakeError as e:
        logger.error("Server refused to open file: %s", e)
        print(f"[ERROR] Server refused to open {args.remote}: {e.response}", file=sys.stderr)
        return 1
    except ProtocolError as e:
        logger.error("Protocol error: %s", e)
        print(f"[ERROR] Server error: {e}", file=sys.stderr)
        return 1
    except RemoteFileError as e:
        logger.error("Remote I/O failed: %s", e)
        print(f"[ERROR] Remote I/O failed: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1
    except OSError as e:
        logger.error("Local I/O failed: %s", e)
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1


def cmd_get(args):
    """
    Handle the get command.

    Copies the remote file until end of stream. Active files are followed
    as they grow until the server reports no more data.
    """
    if args.chunk_size <= 0:
        print("[ERROR] --chunk-size must be positive", file=sys.stderr)
        return 1

    def action(config: AppConfig) -> int:
        if args.transcode:
            file_config = FileConfig.transcode(args.remote, args.transcode)
        elif args.force_active:
            file_config = FileConfig.forced_active(args.remote)
        else:
            file_config = FileConfig.for_reading(args.remote)

        buffer = bytearray(args.chunk_size)
        total = 0
        with _open(config, file_config) as remote:
            out = open(args.output, "wb") if args.output else sys.stdout.buffer
            try:
                while True:
                    count = remote.read(buffer)
                    if count == EOF:
                        break
                    out.write(buffer[:count])
                    total += count
            finally:
                if args.output:
                    out.close()
                else:
                    out.flush()

        logger.info("Copied %d bytes from %s", total, args.remote)
        if args.output:
            print(f"[OK] {total} bytes written to {args.output}")
        return 0

    return _run(args, action)


def cmd_put(args):
    """
    Handle the put command.

    Writes the local file into the remote file starting at --offset, then
    asks the server to sync.
    """
    local_path = Path(args.local)
    if not local_path.is_file():
        print(f"[ERROR] Local file not found: {local_path}", file=sys.stderr)
        return 1
    if args.chunk_size <= 0:
        print("[ERROR] --chunk-size must be positive", file=sys.stderr)
        return 1

    def action(config: AppConfig) -> int:
        file_config = FileConfig.read_write(args.remote, args.upload_id)
        total = 0
        with _open(config, file_config) as remote, open(local_path, "rb") as src:
            remote.seek(args.offset)
            while True:
                chunk = src.read(args.chunk_size)
                if not chunk:
                    break
                remote.write(chunk)
                total += len(chunk)
            remote.sync()

        logger.info("Uploaded %d bytes to %s", total, args.remote)
        print(f"[OK] {total} bytes written to {args.remote} at offset {args.offset}")
        return 0

    return _run(args, action)


def cmd_size(args):
    """Handle the size command."""

    def action(config: AppConfig) -> int:
        if args.force_active:
            file_config = FileConfig.forced_active(args.remote)
        else:
            file_config = FileConfig.for_reading(args.remote)

        with _open(config, file_config) as remote:
            available = remote.length()
            total = remote.total_size
            active = remote.active

        print(f"{args.remote}")
        print(f"     Available: {available} bytes")
        print(f"     Total:     {total} bytes")
        print(f"     Active:    {'yes' if active else 'no'}")
        return 0

    return _run(args, action)


def cmd_truncate(args):
    """Handle the truncate command."""
    if args.length < 0:
        print("[ERROR] Length must not be negative", file=sys.stderr)
        return 1

    def action(config: AppConfig) -> int:
        file_config = FileConfig.read_write(args.remote, args.upload_id)
        with _open(config, file_config) as remote:
            remote.set_length(args.length)
            remote.sync()

        print(f"[OK] {args.remote} truncated to {args.length} bytes")
        return 0

    return _run(args, action)


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    if args.command == "get":
        return cmd_get(args)
    elif args.command == "put":
        return cmd_put(args)
    elif args.command == "size":
        return cmd_size(args)
    elif args.command == "truncate":
        return cmd_truncate(args)
    else:
        print("Usage: sage-remotefile <command> [options]")
        print()
        print("Commands:")
        print("  get       Download a remote file")
        print("  put       Upload into a remote file")
        print("  size      Show remote file size")
        print("  truncate  Set the length of a remote file")
        print()
        print("Run 'sage-remotefile <command> --help' for more information.")
        return 1


if __name__ == "__main__":
    sys.exit(main() or 0)
