"""Reconnecting listener for the realtime order channel."""
import asyncio
from urllib.parse import urlencode, urlsplit, urlunsplit

import structlog
import websockets
from websockets.exceptions import WebSocketException

from .session import TerminalOrderSession

logger = structlog.get_logger(__name__)


def realtime_url(base_url: str, branch_id: str | None = None) -> str:
    """ws(s)://host/realtime/ws?branchId=... for an http(s) cluster URL."""
    parts = urlsplit(base_url)
    scheme = "wss" if parts.scheme == "https" else "ws"
    path = parts.path.rstrip("/") + "/realtime/ws"
    return urlunsplit((scheme, parts.netloc, path, urlencode({"branchId": branch_id or ""}), ""))


class OrderSocketListener:
    def __init__(self, url: str, session: TerminalOrderSession, reconnect_delay: float = 2.0):
        self.url = url
        self.session = session
        self.reconnect_delay = reconnect_delay
        self._stop = asyncio.Event()

    def stop(self) -> None:
        self._stop.set()

    async def run(self) -> None:
        """
        Listen until stop() is called. Drops are never surfaced: the listener
        reconnects and resyncs, because events published while it was away
        are gone for good.
        """
        while not self._stop.is_set():
            try:
                async with websockets.connect(self.url) as ws:
                    logger.info("realtime_connected", url=self.url)
                    await self.session.resync()
                    async for frame in ws:
                        await self.session.handle_frame(frame)
                        if self._stop.is_set():
                            break
            except (WebSocketException, OSError, asyncio.TimeoutError) as exc:
                logger.warning("realtime_disconnected", url=self.url, error=str(exc))
            if self._stop.is_set():
                break
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.reconnect_delay)
            except asyncio.TimeoutError:
                pass
