"""
Unit tests for artifact download with retry logic
"""

import httpx
import pytest

from core.exceptions import FetchError
from ingestion.extractors.http_fetcher import HttpFetcher

URL = "https://data.example.gov/pos.zip"


def fetcher_for(handler, max_retries=3):
    return HttpFetcher(
        timeout=5.0,
        max_retries=max_retries,
        retry_delay=0,
        transport=httpx.MockTransport(handler),
    )


class TestHttpFetcher:
    """Test download, retry and failure behavior"""

    @pytest.mark.asyncio
    async def test_download_writes_exact_bytes(self, tmp_path):
        payload = b"PK\x03\x04" + b"\x00" * 4096

        def handler(request):
            return httpx.Response(200, content=payload)

        dest = tmp_path / "cache" / "pos_iqies.zip"
        result = await fetcher_for(handler).download(URL, dest)

        assert result == dest
        assert dest.read_bytes() == payload
        assert not (tmp_path / "cache" / "pos_iqies.zip.part").exists()

    @pytest.mark.asyncio
    async def test_client_error_fails_immediately(self, tmp_path):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        with pytest.raises(FetchError) as exc_info:
            await fetcher_for(handler).download(URL, tmp_path / "pos_iqies.zip")

        assert len(calls) == 1
        assert exc_info.value.context["status_code"] == 404
        assert not (tmp_path / "pos_iqies.zip").exists()

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self, tmp_path):
        responses = [httpx.Response(503), httpx.Response(502), httpx.Response(200, content=b"ok")]

        def handler(request):
            return responses.pop(0)

        dest = await fetcher_for(handler).download(URL, tmp_path / "pos_iqies.zip")

        assert dest.read_bytes() == b"ok"
        assert responses == []

    @pytest.mark.asyncio
    async def test_server_error_after_max_retries(self, tmp_path):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        with pytest.raises(FetchError) as exc_info:
            await fetcher_for(handler, max_retries=2).download(URL, tmp_path / "pos_iqies.zip")

        assert len(calls) == 2
        assert exc_info.value.context["retry_count"] == 2

    @pytest.mark.asyncio
    async def test_timeout_is_retried_then_fails(self, tmp_path):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(FetchError) as exc_info:
            await fetcher_for(handler, max_retries=3).download(URL, tmp_path / "pos_iqies.zip")

        assert len(calls) == 3
        assert isinstance(exc_info.value.original_exception, httpx.TimeoutException)

    @pytest.mark.asyncio
    async def test_transport_error_recovers(self, tmp_path):
        attempts = {"count": 0}

        def handler(request):
            attempts["count"] += 1
            if attempts["count"] == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, content=b"data")

        dest = await fetcher_for(handler).download(URL, tmp_path / "pos_iqies.zip")

        assert dest.read_bytes() == b"data"
        assert attempts["count"] == 2
