import os
import stat

import pytest

from hello_client import config


def test_default_proto_dir_is_private_and_per_process(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("HELLO_CLIENT_PROTO_PATH", raising=False)

    first = config.get_proto_path("greeter.proto")
    second = config.get_proto_path("greeter_pb2.py")

    assert first.parent == second.parent
    assert first.parent.name.startswith("hello_client_proto_")
    assert stat.S_IMODE(os.stat(first.parent).st_mode) == 0o700


def test_proto_path_from_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path
):
    monkeypatch.setenv("HELLO_CLIENT_PROTO_PATH", str(tmp_path / "protos"))
    path = config.get_proto_path("greeter.proto")
    assert path == (tmp_path / "protos" / "greeter.proto").resolve()
    assert path.parent.is_dir()


def test_log_level_defaults_to_info(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("HELLO_CLIENT_LOG_LEVEL", raising=False)
    assert config.get_log_level() == "INFO"


def test_log_level_is_case_insensitive(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("HELLO_CLIENT_LOG_LEVEL", "debug")
    assert config.get_log_level() == "DEBUG"


def test_unknown_log_level_is_rejected(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("HELLO_CLIENT_LOG_LEVEL", "LOUD")
    with pytest.raises(ValueError):
        _ = config.get_log_level()
