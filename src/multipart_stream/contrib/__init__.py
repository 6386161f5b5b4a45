"""Litestar integration components.

This module provides optional Litestar framework integration. Litestar must be
installed separately to use these components:

    pip install multipart-stream[litestar]

If Litestar is not installed, importing from this module will raise an
ImportError with installation instructions.
"""

from __future__ import annotations

try:
    import litestar  # noqa: F401

    LITESTAR_AVAILABLE = True
except ImportError:
    LITESTAR_AVAILABLE = False


def _raise_litestar_not_installed() -> None:
    """Raise ImportError with installation instructions."""
    msg = (
        "Litestar is not installed. To use Litestar integration features, "
        "install multipart-stream with the 'litestar' extra:\n\n"
        "    pip install multipart-stream[litestar]"
    )
    raise ImportError(msg)


def __getattr__(name: str) -> object:
    """Lazy import with helpful error messages when Litestar is not installed."""
    if name == "LITESTAR_AVAILABLE":
        return LITESTAR_AVAILABLE

    if not LITESTAR_AVAILABLE:
        _raise_litestar_not_installed()

    if name == "MultipartStreamPlugin":
        from multipart_stream.contrib.plugin import MultipartStreamPlugin

        return MultipartStreamPlugin
    if name == "MultipartClientDependency":
        from multipart_stream.contrib.dependencies import MultipartClientDependency

        return MultipartClientDependency
    if name == "provide_client":
        from multipart_stream.contrib.dependencies import provide_client

        return provide_client
    if name == "stream_request_body":
        from multipart_stream.contrib.requests import stream_request_body

        return stream_request_body

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "LITESTAR_AVAILABLE",
    "MultipartClientDependency",
    "MultipartStreamPlugin",
    "provide_client",
    "stream_request_body",
]
