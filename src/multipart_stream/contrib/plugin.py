"""Litestar plugin for store client integration."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from litestar.di import Provide
from litestar.plugins import InitPluginProtocol

from multipart_stream.base import MultipartClient  # noqa: TC001 - needed at runtime for DI

if TYPE_CHECKING:
    from litestar import Litestar
    from litestar.config.app import AppConfig

__all__ = ["MultipartStreamPlugin"]

logger = logging.getLogger(__name__)


class MultipartStreamPlugin(InitPluginProtocol):
    """Litestar plugin registering store clients for streaming uploads.

    Provides:
        - Dependency injection of store clients
        - Lifespan management (clients are closed on shutdown)
        - Multiple named clients

    Example:
        ```python
        from litestar import Litestar, Request, post
        from multipart_stream import (
            AzureConfig,
            AzureMultipartClient,
            MultipartClient,
            S3Config,
            S3MultipartClient,
            UploadSummary,
        )
        from multipart_stream.contrib import MultipartStreamPlugin, stream_request_body


        @post("/uploads/{name:str}")
        async def upload(name: str, request: Request, multipart_client: MultipartClient) -> UploadSummary:
            return await stream_request_body(request, multipart_client, "uploads", name)


        app = Litestar(
            route_handlers=[upload],
            plugins=[
                MultipartStreamPlugin(
                    default=S3MultipartClient(config=S3Config(region="us-east-1")),
                    archive=AzureMultipartClient(config=AzureConfig(connection_string="...")),
                )
            ],
        )
        ```

        This registers ``multipart_client`` and ``archive_multipart_client``.
    """

    __slots__ = ("clients",)

    def __init__(
        self,
        default: MultipartClient | None = None,
        **named_clients: MultipartClient,
    ) -> None:
        """Initialize the MultipartStreamPlugin.

        Args:
            default: Optional default client, registered as "multipart_client"
            **named_clients: Named clients, each registered as "{name}_multipart_client"
        """
        self.clients: dict[str, MultipartClient] = dict(named_clients)
        if default is not None:
            self.clients["default"] = default

    def on_app_init(self, app_config: AppConfig) -> AppConfig:
        """Register store clients as dependencies on application initialization.

        Args:
            app_config: The Litestar application configuration

        Returns:
            Modified application configuration with client dependencies registered
        """
        dependencies = dict(app_config.dependencies or {})

        for name, client in self.clients.items():
            dep_name = "multipart_client" if name == "default" else f"{name}_multipart_client"
            # sync_to_thread=False since we're just returning a reference, no blocking I/O
            dependencies[dep_name] = Provide(self._make_client_provider(client), sync_to_thread=False)

        app_config.dependencies = dependencies

        on_shutdown = list(app_config.on_shutdown or [])
        on_shutdown.append(self._shutdown_clients)
        app_config.on_shutdown = on_shutdown

        return app_config

    async def _shutdown_clients(self, _app: Litestar) -> None:
        """Close every registered client that has a ``close()`` coroutine.

        Errors are logged so every client gets a chance to clean up.
        """
        for name, client in self.clients.items():
            close = getattr(client, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as e:
                logger.warning("Error closing multipart client '%s': %s", name, e)

    @staticmethod
    def _make_client_provider(client: MultipartClient) -> Callable[[], MultipartClient]:
        """Create a provider function bound to ``client``."""

        def provider() -> MultipartClient:
            return client

        return provider
