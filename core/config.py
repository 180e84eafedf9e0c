"""
Core Module - Configuration.

============================================================
PURPOSE
============================================================
All configuration for the server and the agent.

- Command-line flags give the baseline
- Environment variables override flags
- A .env file in the working directory is loaded first
- One frozen object per process, passed explicitly

============================================================
"""

import argparse
import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from dotenv import load_dotenv

from .constants import (
    DEFAULT_ADDRESS,
    DEFAULT_FILE_STORAGE_PATH,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_REPORT_INTERVAL_SECONDS,
    DEFAULT_STORE_INTERVAL_SECONDS,
)
from .exceptions import ConfigurationError


# ============================================================
# DUMP CONFIGURATION
# ============================================================

@dataclass(frozen=True)
class DumpConfig:
    """
    File durability for the in-memory store.
    """

    store_interval: int = DEFAULT_STORE_INTERVAL_SECONDS
    """Seconds between dumps, 0 dumps after every update."""

    file_storage_path: str = DEFAULT_FILE_STORAGE_PATH
    """Dump file, empty disables dumping and restoring."""

    restore: bool = True
    """Load the dump file on startup."""

    @property
    def enabled(self) -> bool:
        return bool(self.file_storage_path)

    @property
    def sync_mode(self) -> bool:
        return self.store_interval == 0


# ============================================================
# SERVER CONFIGURATION
# ============================================================

@dataclass(frozen=True)
class ServerConfig:
    """
    Collector server configuration.
    """

    address: str = DEFAULT_ADDRESS
    """host:port to listen on."""

    database_dsn: str = ""
    """SQLAlchemy URL, empty keeps metrics in memory."""

    key: str = ""
    """Shared HMAC key, empty disables signing."""

    dump: DumpConfig = field(default_factory=DumpConfig)

    log_level: str = "INFO"

    @property
    def host(self) -> str:
        return split_address(self.address)[0]

    @property
    def port(self) -> int:
        return split_address(self.address)[1]


# ============================================================
# AGENT CONFIGURATION
# ============================================================

@dataclass(frozen=True)
class AgentConfig:
    """
    Metrics agent configuration.
    """

    address: str = DEFAULT_ADDRESS
    """Server host:port to report to."""

    poll_interval: int = DEFAULT_POLL_INTERVAL_SECONDS
    """Seconds between runtime samples."""

    report_interval: int = DEFAULT_REPORT_INTERVAL_SECONDS
    """Seconds between reports."""

    key: str = ""
    """Shared HMAC key, empty disables signing."""

    compress: bool = True
    """gzip request bodies."""

    log_level: str = "INFO"

    @property
    def updates_url(self) -> str:
        return f"http://{self.address}/updates/"


# ============================================================
# HELPERS
# ============================================================

def split_address(address: str) -> tuple:
    """Split ``host:port``; an empty host means all interfaces."""
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ConfigurationError("address must be host:port", "address", address)
    try:
        port_number = int(port)
    except ValueError as e:
        raise ConfigurationError("port must be an integer", "address", address) from e
    return host or "0.0.0.0", port_number


def _env_str(env: Mapping[str, str], name: str, default: str) -> str:
    value = env.get(name)
    return value if value else default


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer", name, value) from e
    if parsed < 0:
        raise ConfigurationError(f"{name} must not be negative", name, value)
    return parsed


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "y", "on")


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "y", "on"):
        return True
    if lowered in ("0", "false", "no", "n", "off"):
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean: {value}")


def _non_negative_int(value: str) -> int:
    parsed = int(value)
    if parsed < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value}")
    return parsed


def _positive_int(value: str) -> int:
    parsed = int(value)
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value}")
    return parsed


# ============================================================
# CLI ARGUMENT PARSERS
# ============================================================

def create_server_parser() -> argparse.ArgumentParser:
    """Create the server argument parser."""
    parser = argparse.ArgumentParser(
        prog="metrics-server",
        description="Collects gauge and counter metrics over HTTP",
    )
    parser.add_argument("-a", dest="address", default=DEFAULT_ADDRESS,
                        help="address and port to run server (env ADDRESS)")
    parser.add_argument("-i", dest="store_interval", type=_non_negative_int,
                        default=DEFAULT_STORE_INTERVAL_SECONDS,
                        help="dump to file interval in seconds, 0 = after every update (env STORE_INTERVAL)")
    parser.add_argument("-f", dest="file_storage_path", default=DEFAULT_FILE_STORAGE_PATH,
                        help="dump file path, empty disables dumping (env FILE_STORAGE_PATH)")
    parser.add_argument("-r", dest="restore", type=_parse_bool, default=True,
                        help="restore metrics from the dump file (env RESTORE)")
    parser.add_argument("-d", dest="database_dsn", default="",
                        help="database connection url (env DATABASE_DSN)")
    parser.add_argument("-k", dest="key", default="",
                        help="hash signing key (env KEY)")
    parser.add_argument("--log-level", dest="log_level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="log level (env LOG_LEVEL)")
    return parser


def create_agent_parser() -> argparse.ArgumentParser:
    """Create the agent argument parser."""
    parser = argparse.ArgumentParser(
        prog="metrics-agent",
        description="Samples runtime metrics and reports them to the server",
    )
    parser.add_argument("-a", dest="address", default=DEFAULT_ADDRESS,
                        help="server address and port (env ADDRESS)")
    parser.add_argument("-p", dest="poll_interval", type=_positive_int,
                        default=DEFAULT_POLL_INTERVAL_SECONDS,
                        help="poll interval in seconds (env POLL_INTERVAL)")
    parser.add_argument("-r", dest="report_interval", type=_positive_int,
                        default=DEFAULT_REPORT_INTERVAL_SECONDS,
                        help="report interval in seconds (env REPORT_INTERVAL)")
    parser.add_argument("-k", dest="key", default="",
                        help="hash signing key (env KEY)")
    parser.add_argument("--no-compress", dest="compress", action="store_false",
                        help="send uncompressed request bodies (env COMPRESS)")
    parser.add_argument("--log-level", dest="log_level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="log level (env LOG_LEVEL)")
    return parser


# ============================================================
# CONFIG BUILDERS
# ============================================================

def load_server_config(
    argv: Optional[List[str]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> ServerConfig:
    """
    Build the server configuration from flags and environment.

    Args:
        argv: Command-line arguments (default: sys.argv[1:])
        env: Environment mapping (default: os.environ after loading .env)
    """
    if env is None:
        load_dotenv()
        env = os.environ

    args = create_server_parser().parse_args(argv)

    dump = DumpConfig(
        store_interval=_env_int(env, "STORE_INTERVAL", args.store_interval),
        file_storage_path=env.get("FILE_STORAGE_PATH", args.file_storage_path),
        restore=_env_bool(env, "RESTORE", args.restore),
    )

    config = ServerConfig(
        address=_env_str(env, "ADDRESS", args.address),
        database_dsn=_env_str(env, "DATABASE_DSN", args.database_dsn),
        key=_env_str(env, "KEY", args.key),
        dump=dump,
        log_level=_env_str(env, "LOG_LEVEL", args.log_level).upper(),
    )
    split_address(config.address)
    return config


def load_agent_config(
    argv: Optional[List[str]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> AgentConfig:
    """
    Build the agent configuration from flags and environment.

    Args:
        argv: Command-line arguments (default: sys.argv[1:])
        env: Environment mapping (default: os.environ after loading .env)
    """
    if env is None:
        load_dotenv()
        env = os.environ

    args = create_agent_parser().parse_args(argv)

    config = AgentConfig(
        address=_env_str(env, "ADDRESS", args.address),
        poll_interval=_env_int(env, "POLL_INTERVAL", args.poll_interval),
        report_interval=_env_int(env, "REPORT_INTERVAL", args.report_interval),
        key=_env_str(env, "KEY", args.key),
        compress=_env_bool(env, "COMPRESS", args.compress),
        log_level=_env_str(env, "LOG_LEVEL", args.log_level).upper(),
    )

    if config.poll_interval <= 0 or config.report_interval <= 0:
        raise ConfigurationError("poll and report intervals must be positive")
    return config
