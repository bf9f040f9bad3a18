"""
Pkarr relay client and server.

A relay is an HTTP front for the DHT. It is lower latency than a direct
DHT query, so the resolver prefers it whenever one is configured.

Protocol:
    GET /{z32-public-key}  -> 200 signature | timestamp | packet, or 404
    PUT /{z32-public-key}  <- signature | timestamp | packet
"""

import asyncio
import logging
import time
from typing import Optional

import aiohttp
from aiohttp import web

from ..auth.identity import public_key_from_z32, z32_encode
from ..dht.records import SignedRecord
from ..dht.store import MemoryRecordStore, RecordStore
from ..errors import (
    EntryNotPublished,
    FailedToResolveHomeserverUrl,
    InvalidSignedRecord,
)

logger = logging.getLogger(__name__)

PAYLOAD_CONTENT_TYPE = "application/pkarr.org/relays#payload"

DEFAULT_RELAY = "https://relay.pkarr.org"


class RelayClient(RecordStore):
    """
    Record store backed by a pkarr relay.

    Usage:
        relay = RelayClient("https://relay.pkarr.org")
        record = await relay.lookup(public_key)
        await relay.close()
    """

    def __init__(self, relay_url: str, timeout: float = 30.0):
        self.relay_url = relay_url.rstrip("/")
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "RelayClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def record_url(self, public_key: bytes) -> str:
        return f"{self.relay_url}/{z32_encode(public_key)}"

    async def lookup(self, public_key: bytes) -> Optional[SignedRecord]:
        url = self.record_url(public_key)
        session = await self._get_session()
        try:
            async with session.get(url) as resp:
                if resp.status == 404:
                    logger.debug(f"Relay has no record at {url}")
                    return None
                if resp.status != 200:
                    raise FailedToResolveHomeserverUrl(
                        f"Relay answered {resp.status} for {url}"
                    )
                payload = await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FailedToResolveHomeserverUrl(f"Relay request to {url} failed: {e}") from e

        return SignedRecord.from_relay_payload(public_key, payload)

    async def publish(self, record: SignedRecord) -> None:
        url = self.record_url(record.public_key)
        session = await self._get_session()
        try:
            async with session.put(
                url,
                data=record.to_relay_payload(),
                headers={"Content-Type": PAYLOAD_CONTENT_TYPE},
            ) as resp:
                if resp.status not in (200, 204):
                    reason = await resp.text()
                    raise EntryNotPublished(
                        f"Relay answered {resp.status} for {url}: {reason}"
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise EntryNotPublished(f"Relay request to {url} failed: {e}") from e

        logger.info(f"Published record for {record.z32} via {self.relay_url}")


class RelayServer:
    """
    Pkarr relay server backed by a record store.

    Useful as a local relay for development homeservers and tests:

        server = RelayServer(port=15411)
        await server.start()
        ...
        await server.stop()
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 15411,
        store: Optional[RecordStore] = None,
    ):
        self.host = host
        self.port = port
        self.store = store or MemoryRecordStore()
        self.started_at = time.time()
        self.app = web.Application()
        self.app.router.add_get("/health", self.handle_health)
        self.app.router.add_get("/{public_key}", self.handle_get)
        self.app.router.add_put("/{public_key}", self.handle_put)
        self.runner: Optional[web.AppRunner] = None

    async def start(self) -> None:
        """Start the relay server."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()

        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()

        logger.info(f"Relay server started on {self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the relay server."""
        if self.runner:
            await self.runner.cleanup()
        logger.info("Relay server stopped")

    async def handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({
            "status": "ok",
            "uptime": time.time() - self.started_at,
        })

    def _public_key(self, request: web.Request) -> bytes:
        try:
            return public_key_from_z32(request.match_info["public_key"])
        except ValueError as e:
            raise web.HTTPBadRequest(text=str(e))

    async def handle_get(self, request: web.Request) -> web.Response:
        public_key = self._public_key(request)
        record = await self.store.lookup(public_key)
        if record is None:
            raise web.HTTPNotFound()
        return web.Response(body=record.to_relay_payload(), content_type=PAYLOAD_CONTENT_TYPE)

    async def handle_put(self, request: web.Request) -> web.Response:
        public_key = self._public_key(request)
        payload = await request.read()
        try:
            record = SignedRecord.from_relay_payload(public_key, payload)
        except InvalidSignedRecord as e:
            logger.warning(f"Rejected record for {request.match_info['public_key']}: {e}")
            raise web.HTTPBadRequest(text=str(e))

        try:
            await self.store.publish(record)
        except EntryNotPublished as e:
            raise web.HTTPConflict(text=str(e))

        return web.Response(status=200)
