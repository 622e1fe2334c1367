"""
Unit tests for protocol health probes.
"""

import asyncio

import httpx
import pytest

from cuepoint.errors import ProbeFailure
from cuepoint.failover.models import SourceType
from cuepoint.failover.probes import (
    FileProbe,
    HLSProbe,
    ProbeRegistry,
    RTMPProbe,
    file_path_from_url,
)

from tests.fixtures import StreamSourceFactory


def _client(status_code: int, seen: list) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status_code)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.unit
class TestHLSProbe:
    """Tests for the HLS playlist probe."""

    @pytest.mark.asyncio
    async def test_healthy_on_2xx(self):
        seen = []
        source = StreamSourceFactory.create(type=SourceType.HLS, url="https://cdn.test/live.m3u8")

        async with _client(200, seen) as client:
            assert await HLSProbe(client=client)(source) is True

        assert seen[0].method == "HEAD"
        assert str(seen[0].url) == "https://cdn.test/live.m3u8"

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        source = StreamSourceFactory.create(type=SourceType.HLS, url="https://cdn.test/live.m3u8")

        async with _client(503, []) as client:
            with pytest.raises(ProbeFailure, match="HTTP 503"):
                await HLSProbe(client=client)(source)


@pytest.mark.unit
class TestFileProbe:
    """Tests for the local file probe."""

    @pytest.mark.asyncio
    async def test_existing_file(self, tmp_path):
        media = tmp_path / "slate.mp4"
        media.write_bytes(b"\x00" * 16)
        source = StreamSourceFactory.create(type=SourceType.FILE, url=str(media))

        assert await FileProbe()(source) is True

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        source = StreamSourceFactory.create(
            type=SourceType.FILE, url=f"file://{tmp_path}/missing.mp4"
        )

        with pytest.raises(ProbeFailure, match="File not found"):
            await FileProbe()(source)

    def test_file_url_parsing(self):
        assert str(file_path_from_url("file:///var/media/a%20b.mp4")) == "/var/media/a b.mp4"
        assert str(file_path_from_url("/var/media/c.mp4")) == "/var/media/c.mp4"


@pytest.mark.unit
class TestRTMPProbe:
    """Tests for the RTMP ingest probe."""

    @pytest.mark.asyncio
    async def test_connects_to_listener(self):
        server = await asyncio.start_server(lambda r, w: w.close(), "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        source = StreamSourceFactory.create(url=f"rtmp://127.0.0.1:{port}/live/main")

        try:
            assert await RTMPProbe()(source) is True
        finally:
            server.close()
            await server.wait_closed()

    @pytest.mark.asyncio
    async def test_url_without_host(self):
        source = StreamSourceFactory.create(url="rtmp:///live")

        with pytest.raises(ProbeFailure):
            await RTMPProbe()(source)


@pytest.mark.unit
class TestProbeRegistry:
    """Tests for probe lookup by source type."""

    def test_default_covers_every_type(self):
        registry = ProbeRegistry.default()

        for source_type in SourceType:
            assert registry.get(source_type) is not None

    @pytest.mark.asyncio
    async def test_dispatches_by_type(self):
        calls = []

        async def probe(source):
            calls.append(source.id)
            return 1

        registry = ProbeRegistry({SourceType.SRT: probe})
        source = StreamSourceFactory.create(id="srt1", type=SourceType.SRT)

        assert await registry.probe(source) is True
        assert calls == ["srt1"]

    @pytest.mark.asyncio
    async def test_unregistered_type(self):
        registry = ProbeRegistry()
        source = StreamSourceFactory.create(type=SourceType.HLS)

        with pytest.raises(ProbeFailure, match="No probe registered"):
            await registry.probe(source)
