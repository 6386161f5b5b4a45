"""Shared pytest fixtures for multipart-stream tests."""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncGenerator, Sequence
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from multipart_stream.backends.memory import MemoryConfig, MemoryMultipartClient
from multipart_stream.exceptions import StoreError

if TYPE_CHECKING:
    from multipart_stream.backends.filesystem import FileSystemMultipartClient
    from multipart_stream.backends.s3 import S3MultipartClient


# ==================================================================================== #
# PYTEST CONFIGURATION
# ==================================================================================== #


def pytest_configure(config):
    """Configure pytest with custom settings and markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Tests that take more than 1 second")
    config.addinivalue_line("markers", "litestar: Tests that require Litestar")

    os.environ["PYTHONDONTWRITEBYTECODE"] = "1"


# ==================================================================================== #
# INSTRUMENTED CLIENT
# ==================================================================================== #


class RecordingClient(MemoryMultipartClient):
    """Memory client that records every call and can inject failures and stalls.

    Attributes:
        calls: (operation, ...) tuples in call order
        part_errors: part_number -> exception raised instead of storing that part
        begin_error: Exception raised by begin_multipart when set
        complete_error: Exception raised by complete_multipart when set
        delays: part_number -> seconds to sleep before storing that part
        gate: When set, uploads of ``gated_parts`` (all parts if None) wait on it
        in_flight: Number of upload_part calls currently running
        max_in_flight: Highest value in_flight reached
    """

    def __init__(
        self,
        *,
        part_errors: dict[int, Exception] | None = None,
        delays: dict[int, float] | None = None,
        gate: asyncio.Event | None = None,
        gated_parts: set[int] | None = None,
        config: MemoryConfig | None = None,
    ) -> None:
        super().__init__(config=config)
        self.calls: list[tuple] = []
        self.part_errors = part_errors or {}
        self.begin_error: Exception | None = None
        self.complete_error: Exception | None = None
        self.delays = delays or {}
        self.gate = gate
        self.gated_parts = gated_parts
        self.in_flight = 0
        self.max_in_flight = 0
        self.stored_parts: list[int] = []

    @property
    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]

    @property
    def uploaded_part_numbers(self) -> list[int]:
        """Part numbers passed to upload_part, in call order."""
        return [call[1] for call in self.calls if call[0] == "upload_part"]

    async def begin_multipart(self, bucket: str, key: str) -> str:
        self.calls.append(("begin", bucket, key))
        if self.begin_error is not None:
            raise self.begin_error
        return await super().begin_multipart(bucket, key)

    async def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        data: bytes,
    ) -> str:
        self.calls.append(("upload_part", part_number, len(data)))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None and (self.gated_parts is None or part_number in self.gated_parts):
                await self.gate.wait()
            if part_number in self.delays:
                await asyncio.sleep(self.delays[part_number])
            if part_number in self.part_errors:
                raise self.part_errors[part_number]
            etag = await super().upload_part(bucket, key, upload_id, part_number, data)
        finally:
            self.in_flight -= 1
        self.stored_parts.append(part_number)
        return etag

    async def complete_multipart(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[tuple[int, str]],
    ) -> None:
        self.calls.append(("complete", upload_id, [number for number, _ in parts]))
        if self.complete_error is not None:
            raise self.complete_error
        await super().complete_multipart(bucket, key, upload_id, parts)

    async def abort_multipart(self, bucket: str, key: str, upload_id: str) -> None:
        self.calls.append(("abort", upload_id))
        await super().abort_multipart(bucket, key, upload_id)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Yield to the event loop until ``predicate()`` is true."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout)


# ==================================================================================== #
# CLIENT FIXTURES
# ==================================================================================== #


@pytest.fixture
def memory_client() -> MemoryMultipartClient:
    """
    Fresh in-memory client for each test.

    No part size limits, so tests can use tiny chunks.
    """
    return MemoryMultipartClient(config=MemoryConfig())


@pytest.fixture
def recording_client() -> RecordingClient:
    """Memory client recording calls, with no failures configured."""
    return RecordingClient()


@pytest.fixture
def part_error() -> StoreError:
    """A distinct store error instance to inject into part uploads."""
    return StoreError("Simulated part failure")


@pytest.fixture
def filesystem_client(tmp_path: Path) -> FileSystemMultipartClient:
    """
    Filesystem client rooted in a temporary directory.

    Args:
        tmp_path: pytest fixture providing temporary directory path
    """
    from multipart_stream.backends.filesystem import FileSystemConfig, FileSystemMultipartClient

    return FileSystemMultipartClient(config=FileSystemConfig(path=tmp_path / "store"))


# S3 fixtures
# NOTE: Uses moto server mode for aiobotocore compatibility.
# The decorator-based mock_aws() doesn't work with aiobotocore's async API.


@pytest.fixture(scope="session")
def moto_server():
    """
    Start moto server for S3 mocking with aiobotocore (session-scoped).

    Uses moto's ThreadedMotoServer to run moto in a separate thread,
    which properly handles aiobotocore's async requests.
    """
    pytest.importorskip("moto")
    from moto.server import ThreadedMotoServer

    server = ThreadedMotoServer(port="0", verbose=False)
    server.start()

    host, port = server.get_host_and_port()
    endpoint_url = f"http://{host}:{port}"

    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"

    yield endpoint_url

    server.stop()


@pytest.fixture(scope="session")
def mock_s3_bucket_setup(moto_server: str):
    """
    Create mock S3 bucket once per session (session-scoped).

    Args:
        moto_server: Endpoint URL from moto server fixture
    """
    import boto3

    s3_client = boto3.client(
        "s3",
        endpoint_url=moto_server,
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    s3_client.create_bucket(Bucket="test-bucket")

    return {"client": s3_client, "endpoint_url": moto_server}


@pytest.fixture
def mock_s3_bucket(mock_s3_bucket_setup: dict):
    """
    Provide S3 bucket with per-test cleanup (function-scoped).

    Removes objects and unfinished multipart uploads after each test.
    """
    yield mock_s3_bucket_setup

    s3_client = mock_s3_bucket_setup["client"]
    try:
        response = s3_client.list_objects_v2(Bucket="test-bucket")
        objects = [{"Key": obj["Key"]} for obj in response.get("Contents", [])]
        if objects:
            s3_client.delete_objects(Bucket="test-bucket", Delete={"Objects": objects})

        uploads = s3_client.list_multipart_uploads(Bucket="test-bucket")
        for upload in uploads.get("Uploads", []):
            s3_client.abort_multipart_upload(Bucket="test-bucket", Key=upload["Key"], UploadId=upload["UploadId"])
    except Exception:  # noqa: S110
        pass  # Ignore cleanup errors


@pytest.fixture
async def s3_client(mock_s3_bucket: dict) -> AsyncGenerator[S3MultipartClient, None]:
    """
    S3 client pointed at the moto server.

    The shared aioboto3 client is closed after the test.
    """
    pytest.importorskip("aioboto3")
    from multipart_stream.backends.s3 import S3Config, S3MultipartClient

    client = S3MultipartClient(
        config=S3Config(
            region="us-east-1",
            endpoint_url=mock_s3_bucket["endpoint_url"],
            access_key_id="testing",
            secret_access_key="testing",
        )
    )
    yield client
    await client.close()


# ==================================================================================== #
# TEST DATA
# ==================================================================================== #


@pytest.fixture(scope="session")
def sample_binary_data() -> bytes:
    """Every byte value once, so misordered chunks are easy to spot."""
    return bytes(range(256))


@pytest.fixture(scope="session")
def patterned_data() -> bytes:
    """100KB of non-repeating-per-chunk data for content checks.

    Session-scoped as this is immutable data that can be reused across all tests.
    """
    return b"".join(i.to_bytes(4, "big") for i in range(25_600))
