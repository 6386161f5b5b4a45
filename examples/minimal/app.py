"""Minimal multipart-stream example.

Streams raw request bodies into an in-memory multipart store without ever
holding a whole body in memory at once.

Run with:
    uv run litestar --app examples.minimal.app:app run

Then:
    curl --data-binary @big.iso http://127.0.0.1:8000/uploads/big.iso
"""

from litestar import Litestar, Request, Response, get, post
from litestar.exceptions import NotFoundException
from litestar.status_codes import HTTP_502_BAD_GATEWAY

from multipart_stream import MultipartClient, PartUploadError, StoreError, UploadSummary
from multipart_stream.backends.memory import MemoryMultipartClient
from multipart_stream.contrib.plugin import MultipartStreamPlugin
from multipart_stream.contrib.requests import stream_request_body

BUCKET = "uploads"
CHUNK_SIZE = 64 * 1024

store = MemoryMultipartClient()


def part_failed_handler(_: object, exc: PartUploadError) -> Response:
    """Convert PartUploadError to 502 response."""
    return Response(
        content={"detail": str(exc), "cause": str(exc.cause)},
        status_code=HTTP_502_BAD_GATEWAY,
    )


def store_error_handler(_: object, exc: StoreError) -> Response:
    """Convert StoreError raised while talking to the store to 502 response."""
    return Response(content={"detail": str(exc)}, status_code=HTTP_502_BAD_GATEWAY)


@post("/uploads/{key:path}")
async def upload(key: str, request: Request, multipart_client: MultipartClient) -> UploadSummary:
    """Stream the request body to the store."""
    return await stream_request_body(request, multipart_client, BUCKET, key.lstrip("/"), chunk_size=CHUNK_SIZE)


@get("/uploads/{key:path}")
async def download(key: str) -> bytes:
    """Return a completed object."""
    try:
        return store.get_object(BUCKET, key.lstrip("/"))
    except StoreError as e:
        raise NotFoundException(detail=str(e)) from e


app = Litestar(
    route_handlers=[upload, download],
    plugins=[MultipartStreamPlugin(default=store)],
    exception_handlers={PartUploadError: part_failed_handler, StoreError: store_error_handler},
)
