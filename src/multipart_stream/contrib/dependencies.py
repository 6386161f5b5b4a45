"""Dependency injection utilities for store clients."""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeAlias

from multipart_stream.base import MultipartClient  # noqa: TC001 - needed at runtime for DI

__all__ = ["MultipartClientDependency", "provide_client"]


MultipartClientDependency: TypeAlias = "MultipartClient"
"""Type alias for injecting a store client into route handlers.

Example:
    ```python
    from litestar import post, Request
    from multipart_stream.contrib.dependencies import MultipartClientDependency

    @post("/exports/{name:str}")
    async def export(name: str, request: Request, multipart_client: MultipartClientDependency) -> None:
        ...
    ```
"""


def provide_client(client: MultipartClient) -> Callable[[], MultipartClient]:
    """Create a dependency provider function for a store client.

    Args:
        client: The store client to provide

    Returns:
        A callable that returns the client for dependency injection

    Example:
        ```python
        from litestar import Litestar
        from litestar.di import Provide
        from multipart_stream import S3Config, S3MultipartClient
        from multipart_stream.contrib.dependencies import provide_client

        client = S3MultipartClient(config=S3Config(region="eu-west-1"))

        app = Litestar(
            route_handlers=[...],
            dependencies={"multipart_client": Provide(provide_client(client), sync_to_thread=False)},
        )
        ```
    """

    def _provider() -> MultipartClient:
        return client

    return _provider
