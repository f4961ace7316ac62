import atexit
import logging
import os
import shutil
import tempfile
from functools import lru_cache
from pathlib import Path

DEFAULT_FIRST_NAME = "John"
DEFAULT_LAST_NAME = "Doe"
DEFAULT_CIN = "123456789"
DEFAULT_TARGET = "localhost:50051"

# Upper bound on the teardown wait, in seconds.
SHUTDOWN_TIMEOUT = 5.0

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def get_log_level() -> str:
    """Return the log level name from HELLO_CLIENT_LOG_LEVEL (default INFO)."""
    level = os.getenv("HELLO_CLIENT_LOG_LEVEL", "INFO").upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"Unknown log level in HELLO_CLIENT_LOG_LEVEL: {level!r}")
    return level


def is_skip_generation() -> bool:
    """Check if the proto file and code generation should be skipped."""
    return os.getenv("HELLO_CLIENT_SKIP_GENERATION", "false").lower() == "true"


@lru_cache(maxsize=1)
def default_proto_dir() -> Path:
    """A private (0700) directory for this process, removed at exit."""
    path = tempfile.mkdtemp(prefix="hello_client_proto_")
    atexit.register(shutil.rmtree, path, ignore_errors=True)
    return Path(path)


def get_proto_path(proto_filename: str) -> Path:
    # 1. Get raw env var (or default to a per-process dir under the temp dir)
    raw = os.getenv("HELLO_CLIENT_PROTO_PATH", None)
    base = Path(raw) if raw is not None else default_proto_dir()

    # 2. Expand ~ and env-vars, then make absolute
    base = Path(os.path.expandvars(os.path.expanduser(str(base)))).resolve()

    # 3. Ensure it's a directory (or create it)
    if not base.exists():
        try:
            base.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RuntimeError(f"Unable to create directory {base!r}: {e}") from e
    elif not base.is_dir():
        raise NotADirectoryError(f"{base!r} exists but is not a directory")

    # 4. Check writability
    if not os.access(base, os.W_OK):
        raise PermissionError(f"No write permission for directory {base!r}")

    return base / proto_filename
