"""Metadata for the multipart-stream distribution."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

__all__ = ("__project__", "__version__")

__project__ = "multipart-stream"

try:
    __version__ = version(__project__)
except PackageNotFoundError:  # pragma: no cover - running from a source checkout
    __version__ = "0.0.0"
