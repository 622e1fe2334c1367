"""
Protocol-specific health probes.

A probe answers "is this source currently serving usable content?". Probes
are pluggable strategies keyed by source type; a probe either returns a bool
or raises, and the health monitor treats exceptions like a False result.
"""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional
from urllib.parse import unquote, urlparse

import httpx

from cuepoint.errors import ProbeFailure
from cuepoint.failover.models import SourceType, StreamSource

logger = logging.getLogger(__name__)

Probe = Callable[[StreamSource], Awaitable[bool]]

DEFAULT_RTMP_PORT = 1935
DEFAULT_SRT_PORT = 9999


class HLSProbe:
    """HEAD request against the playlist URL; healthy on any 2xx."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 5.0):
        self._client = client
        self._timeout = timeout

    async def __call__(self, source: StreamSource) -> bool:
        if self._client is not None:
            response = await self._client.head(source.url)
        else:
            async with httpx.AsyncClient(
                timeout=self._timeout, follow_redirects=True
            ) as client:
                response = await client.head(source.url)

        if response.is_success:
            return True
        raise ProbeFailure(f"HTTP {response.status_code} from {source.url}")


class RTMPProbe:
    """TCP connect to the RTMP ingest host."""

    async def __call__(self, source: StreamSource) -> bool:
        parsed = urlparse(source.url)
        if not parsed.hostname:
            raise ProbeFailure(f"No host in RTMP url: {source.url}")

        _, writer = await asyncio.open_connection(
            parsed.hostname, parsed.port or DEFAULT_RTMP_PORT
        )
        writer.close()
        await writer.wait_closed()
        return True


class SRTProbe:
    """
    SRT runs over UDP, so there is no handshake-free connect to test; the
    probe only checks that the caller/listener host resolves.
    """

    async def __call__(self, source: StreamSource) -> bool:
        parsed = urlparse(source.url)
        if not parsed.hostname:
            raise ProbeFailure(f"No host in SRT url: {source.url}")

        loop = asyncio.get_running_loop()
        addresses = await loop.getaddrinfo(parsed.hostname, parsed.port or DEFAULT_SRT_PORT)
        return bool(addresses)


class FileProbe:
    """Local file sources are healthy while the file exists."""

    async def __call__(self, source: StreamSource) -> bool:
        path = file_path_from_url(source.url)
        if path.exists():
            return True
        raise ProbeFailure(f"File not found: {path}")


def file_path_from_url(url: str) -> Path:
    if url.startswith("file://"):
        return Path(unquote(urlparse(url).path))
    return Path(url)


class ProbeRegistry:
    """Maps source types to probe strategies."""

    def __init__(self, probes: Optional[dict[SourceType, Probe]] = None):
        self._probes: dict[SourceType, Probe] = {}
        for source_type, probe in (probes or {}).items():
            self.register(source_type, probe)

    @classmethod
    def default(cls, http_client: Optional[httpx.AsyncClient] = None) -> "ProbeRegistry":
        return cls({
            SourceType.HLS: HLSProbe(client=http_client),
            SourceType.RTMP: RTMPProbe(),
            SourceType.SRT: SRTProbe(),
            SourceType.FILE: FileProbe(),
        })

    def register(self, source_type: SourceType, probe: Probe) -> None:
        self._probes[SourceType(source_type)] = probe

    def get(self, source_type: SourceType) -> Optional[Probe]:
        return self._probes.get(source_type)

    async def probe(self, source: StreamSource) -> bool:
        probe = self.get(source.type)
        if probe is None:
            raise ProbeFailure(f"No probe registered for source type: {source.type.value}")
        return bool(await probe(source))
