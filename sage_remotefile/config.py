import configparser
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .protocol import DEFAULT_PORT


class OpenMode(Enum):
    READ_WRITE = "read-write"
    READ_ONLY = "read-only"
    READ_ONLY_TRANSCODE = "read-only-transcode"
    READ_ONLY_FORCED_ACTIVE = "read-only-forced-active"


@dataclass
class ServerConfig:
    host: str
    port: int = DEFAULT_PORT


@dataclass
class ConnectionConfig:
    timeout_seconds: float = 30


@dataclass(frozen=True)
class FileConfig:
    """
    Immutable description of one remote file handle.

    Each OpenMode carries only the fields it needs: READ_WRITE requires an
    upload_id, READ_ONLY_TRANSCODE requires a transcode_mode, and neither
    field is accepted by any other mode.
    """

    path: str
    mode: OpenMode = OpenMode.READ_ONLY
    upload_id: int | None = None
    transcode_mode: str | None = None
    sync_writes: bool = False  # FORCE TRUE after every write

    def __post_init__(self):
        if not self.path:
            raise ValueError("Remote path must not be empty")
        if self.mode is OpenMode.READ_WRITE:
            if self.upload_id is None:
                raise ValueError("Read-write mode requires an upload_id")
        elif self.upload_id is not None:
            raise ValueError(f"upload_id is only valid in read-write mode, not {self.mode.value}")
        if self.mode is OpenMode.READ_ONLY_TRANSCODE:
            if not self.transcode_mode:
                raise ValueError("Transcode mode requires a non-empty transcode_mode")
        elif self.transcode_mode is not None:
            raise ValueError(
                f"transcode_mode is only valid in read-only-transcode mode, not {self.mode.value}"
            )
        if self.sync_writes and self.mode is not OpenMode.READ_WRITE:
            raise ValueError("sync_writes is only valid in read-write mode")

    @classmethod
    def read_write(cls, path: str, upload_id: int, sync_writes: bool = False) -> "FileConfig":
        return cls(path, OpenMode.READ_WRITE, upload_id=upload_id, sync_writes=sync_writes)

    @classmethod
    def for_reading(cls, path: str) -> "FileConfig":
        return cls(path, OpenMode.READ_ONLY)

    @classmethod
    def transcode(cls, path: str, transcode_mode: str) -> "FileConfig":
        return cls(path, OpenMode.READ_ONLY_TRANSCODE, transcode_mode=transcode_mode)

    @classmethod
    def forced_active(cls, path: str) -> "FileConfig":
        return cls(path, OpenMode.READ_ONLY_FORCED_ACTIVE)

    @property
    def read_only(self) -> bool:
        return self.mode is not OpenMode.READ_WRITE

    @property
    def force_active(self) -> bool:
        return self.mode is OpenMode.READ_ONLY_FORCED_ACTIVE


@dataclass
class LogConfig:
    level: str = "INFO"
    file: str = "sage-remotefile.log"
    console: bool = True


@dataclass
class AppConfig:
    server: ServerConfig
    connection: ConnectionConfig
    logging: LogConfig


def load_config(config_path: str | None = None, **cli_args) -> AppConfig:
    """
    Load configuration from an INI file and/or CLI arguments.
    CLI arguments take precedence over config file.

    Args:
        config_path: Path to the INI configuration file.
        **cli_args: Key-value pairs from command line arguments
            (host, port, timeout, debug).

    Returns:
        AppConfig: The populated configuration object.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If host is missing or a numeric field is invalid.
    """
    # Initialize with defaults
    server_config = {
        "host": None,
        "port": DEFAULT_PORT,
    }
    connection_config = {
        "timeout_seconds": 30,
    }
    log_config = {
        "level": "INFO",
        "file": "sage-remotefile.log",
        "console": True,
    }

    # Parse INI file if provided
    if config_path is not None:
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        parser = configparser.ConfigParser()
        parser.read(config_file, encoding="utf-8")

        # Load [server] section
        if parser.has_section("server"):
            server_section = parser["server"]
            if server_section.get("host"):
                server_config["host"] = server_section.get("host")
            if server_section.get("port"):
                try:
                    server_config["port"] = int(server_section.get("port"))
                except ValueError:
                    raise ValueError(
                        f"Invalid port value in config: '{server_section.get('port')}' - must be an integer"
                    )

        # Load [connection] section
        if parser.has_section("connection"):
            conn_section = parser["connection"]
            if conn_section.get("timeout_seconds"):
                try:
                    connection_config["timeout_seconds"] = float(
                        conn_section.get("timeout_seconds")
                    )
                except ValueError:
                    raise ValueError(
                        f"Invalid timeout_seconds value in config: '{conn_section.get('timeout_seconds')}' - must be a number"
                    )

        # Load [logging] section
        if parser.has_section("logging"):
            log_section = parser["logging"]
            if log_section.get("level"):
                log_config["level"] = log_section.get("level")
            if "file" in log_section:
                log_config["file"] = log_section.get("file")
            if log_section.get("console"):
                log_config["console"] = log_section.get("console", "false").lower() in (
                    "true",
                    "1",
                    "yes",
                )

    # Override with CLI arguments (cli_args take precedence)
    if cli_args.get("host") is not None:
        server_config["host"] = cli_args["host"]
    if cli_args.get("port") is not None:
        server_config["port"] = int(cli_args["port"])
    if cli_args.get("timeout") is not None:
        connection_config["timeout_seconds"] = float(cli_args["timeout"])
    if cli_args.get("debug"):
        log_config["level"] = "DEBUG"
        log_config["console"] = True

    # Validate
    if not server_config["host"]:
        raise ValueError("Missing required configuration fields: host")
    if not 0 < server_config["port"] < 65536:
        raise ValueError(f"Invalid port: {server_config['port']}. Must be between 1 and 65535.")
    if connection_config["timeout_seconds"] <= 0:
        raise ValueError(
            f"Invalid timeout: {connection_config['timeout_seconds']}. Must be positive."
        )

    return AppConfig(
        server=ServerConfig(
            host=server_config["host"],
            port=server_config["port"],
        ),
        connection=ConnectionConfig(
            timeout_seconds=connection_config["timeout_seconds"],
        ),
        logging=LogConfig(
            level=log_config["level"],
            file=log_config["file"],
            console=log_config["console"],
        ),
    )
