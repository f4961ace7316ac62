"""pytest configuration for hello_client tests."""

import os
import shutil
import sys
import tempfile
from collections.abc import Callable, Iterator

import pytest

# Create a temporary directory for generated proto files
_temp_proto_dir = tempfile.mkdtemp()
os.environ["HELLO_CLIENT_PROTO_PATH"] = _temp_proto_dir

# Loopback calls must not be routed through an HTTP proxy
os.environ["no_grpc_proxy"] = "localhost,127.0.0.1"

# Ensure the src directory is in the Python path
src_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from hello_client.messages import Greeter  # noqa: E402
from hello_client.server import GreeterServer  # noqa: E402


@pytest.fixture
def greeter_server() -> Iterator[Callable[..., str]]:
    """Start GreeterServers on ephemeral ports; yields a factory returning the target."""
    servers: list[GreeterServer] = []

    def start(service: Greeter | None = None) -> str:
        server = GreeterServer(service)
        server.set_address("127.0.0.1:0")
        port = server.start()
        servers.append(server)
        return f"127.0.0.1:{port}"

    yield start

    for server in servers:
        server.stop(grace=None)


def pytest_sessionfinish(session: pytest.Session, exitstatus: pytest.ExitCode) -> None:
    """Clean up the entire temporary directory when the test session ends."""
    _ = session
    _ = exitstatus
    if os.path.exists(_temp_proto_dir):
        shutil.rmtree(_temp_proto_dir, ignore_errors=True)
