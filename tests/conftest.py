"""Shared fixtures for the mychmod tests."""

import os
import stat

import pytest

import mychmod


@pytest.fixture
def make_file(tmp_path):
    """Factory creating a file in tmp_path with an exact permission mode."""
    def _make_file(name: str, mode: int) -> str:
        path = tmp_path / name
        path.write_text("data\n")
        os.chmod(path, mode)
        return str(path)
    return _make_file


@pytest.fixture
def file_mode():
    """Returns the permission bits of a path."""
    def _file_mode(path: str) -> int:
        return stat.S_IMODE(os.stat(path).st_mode)
    return _file_mode


@pytest.fixture
def fail_on(monkeypatch):
    """
    Make read_mode or write_mode raise an OSError with the given errno for
    one path, leaving every other path on the real filesystem.
    """
    def _fail_on(operation: str, path: str, error_number: int):
        original = getattr(mychmod, operation)

        def failing(target_path, *args):
            if target_path == path:
                raise OSError(error_number, os.strerror(error_number), target_path)
            return original(target_path, *args)

        monkeypatch.setattr(mychmod, operation, failing)
    return _fail_on
