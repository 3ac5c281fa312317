"""
Smoke tests for package structure and availability.

These tests only verify that the package is installed and that the public
entry points are importable.
"""

from __future__ import annotations

import importlib

from callsage import __version__


def test_package_importable() -> None:
    """Ensure the top-level package and its layers import cleanly."""
    for name in ("callsage", "callsage.agents", "callsage.pipelines", "callsage.api.app"):
        assert importlib.import_module(name) is not None


def test_version_is_set() -> None:
    assert isinstance(__version__, str)
    assert len(__version__) > 0


def test_cli_module_exposes_app() -> None:
    """The `callsage` console script points at `callsage.cli:app`."""
    cli = importlib.import_module("callsage.cli")
    assert hasattr(cli, "app")


def test_server_module_exposes_app() -> None:
    server = importlib.import_module("callsage.api.server")
    assert hasattr(server, "app")
    assert callable(server.main)
