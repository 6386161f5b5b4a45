"""Integration tests for the minimal example application.

Tests verify the streaming upload and download workflow
using Litestar's test client.
"""

from __future__ import annotations

import pytest

pytest.importorskip("litestar")

from litestar.testing import AsyncTestClient

pytestmark = pytest.mark.integration


class TestMinimalAppUpload:
    """Test streaming upload functionality."""

    async def test_upload_and_download(self) -> None:
        """
        Test uploading a body and reading it back.

        Verifies:
        - Upload returns an UploadSummary response
        - The body is split into 64KB parts
        - Download returns the exact bytes
        """
        from examples.minimal.app import app

        body = bytes(range(256)) * 1000

        async with AsyncTestClient(app=app) as client:
            response = await client.post("/uploads/data/blob.bin", content=body)

            assert response.status_code == 201
            data = response.json()
            assert data["key"] == "data/blob.bin"
            assert data["size"] == len(body)
            assert len(data["parts"]) == 4

            download = await client.get("/uploads/data/blob.bin")
            assert download.status_code == 200
            assert download.content == body

    async def test_download_missing(self) -> None:
        from examples.minimal.app import app

        async with AsyncTestClient(app=app) as client:
            response = await client.get("/uploads/missing.bin")

        assert response.status_code == 404
        assert "Object not found" in response.json()["detail"]

    async def test_part_failure(self, monkeypatch) -> None:
        """
        Test the 502 mapping of part failures.

        Verifies:
        - The response names the failed part and the store error
        """
        from examples.minimal import app as example

        async def failing_upload(bucket: str, key: str, upload_id: str, part_number: int, data: bytes) -> str:
            raise example.StoreError("backend unavailable")

        monkeypatch.setattr(example.store, "upload_part", failing_upload)

        async with AsyncTestClient(app=example.app) as client:
            response = await client.post("/uploads/broken.bin", content=b"x" * 200_000)

        assert response.status_code == 502
        assert response.json()["cause"] == "backend unavailable"
        assert "Upload of part 1 failed" in response.json()["detail"]

    async def test_begin_failure(self, monkeypatch) -> None:
        """
        Test the mapping of store errors raised on the upload path.

        Verifies:
        - A failed begin_multipart returns 502, not 404
        """
        from examples.minimal import app as example

        async def failing_begin(bucket: str, key: str) -> str:
            raise example.StoreError("store offline")

        monkeypatch.setattr(example.store, "begin_multipart", failing_begin)

        async with AsyncTestClient(app=example.app) as client:
            response = await client.post("/uploads/offline.bin", content=b"x" * 200_000)

        assert response.status_code == 502
        assert response.json()["detail"] == "store offline"
