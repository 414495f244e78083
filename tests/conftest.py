"""Shared fixtures for moka tests.

Servers are registered process-wide by name, so every test gets fresh,
unique names. Code tests write throwaway modules into a temporary
directory on ``sys.path`` and drop them from ``sys.modules`` afterwards.
"""
import sys
import uuid
import textwrap
import importlib

import pytest

import moka.history as history
from moka import config


def unique(prefix):
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


@pytest.fixture
def names():
    """A function returning a new unique server name on each call."""
    return unique


@pytest.fixture
def history_server():
    server = history.start(unique("history"))
    yield server
    if server.running:
        server.stop()


@pytest.fixture
def settings_env(monkeypatch):
    """monkeypatch for MOKA_* variables; settings are re-read lazily."""
    config.settings.cache_clear()
    yield monkeypatch
    config.settings.cache_clear()


class ModuleFactory:
    def __init__(self, directory):
        self.directory = directory
        self.created = []

    def name(self, prefix = "mod"):
        return unique(prefix)

    def write(self, name, source):
        """Write ``<name>.py`` and return the module name."""
        path = self.directory / f"{name}.py"
        path.write_text(textwrap.dedent(source))
        self.created.append(name)
        importlib.invalidate_caches()
        return name

    def load(self, name, source):
        self.write(name, source)
        return importlib.import_module(name)


@pytest.fixture
def modules(tmp_path):
    sys.path.insert(0, str(tmp_path))
    factory = ModuleFactory(tmp_path)
    yield factory
    sys.path.remove(str(tmp_path))
    for name in factory.created:
        sys.modules.pop(name, None)
    importlib.invalidate_caches()
