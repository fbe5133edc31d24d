from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import websockets
from websockets.protocol import State

from ..exceptions import TransportError
from ..util import json as nostrjson


@dataclass(slots=True)
class WebSocketConfig:
    url: str
    connect_timeout_s: float = 5.0
    # Relays answer protocol-level pings, so keep them on to detect dead peers.
    ping_interval_s: float | None = 20.0


class WebSocketTransport:
    """One text-frame websocket to a single Nostr relay."""

    def __init__(self, cfg: WebSocketConfig) -> None:
        self.cfg = cfg
        self._ws: Any | None = None

    @property
    def is_open(self) -> bool:
        return self._ws is not None and getattr(self._ws, "state", None) == State.OPEN

    def _require_ws(self) -> Any:
        if self._ws is None:
            raise TransportError(f"not connected to {self.cfg.url}")
        return self._ws

    async def connect(self) -> None:
        if self._ws is not None:
            return
        opening = websockets.connect(
            self.cfg.url,
            max_size=None,
            open_timeout=self.cfg.connect_timeout_s,
            ping_interval=self.cfg.ping_interval_s,
        )
        try:
            self._ws = await asyncio.wait_for(opening, timeout=self.cfg.connect_timeout_s)
        except Exception as e:
            raise TransportError(f"failed to connect to {self.cfg.url}: {e}") from e

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()

    async def send_json(self, message: list[Any]) -> None:
        ws = self._require_ws()
        frame = nostrjson.dumps(message)
        try:
            await ws.send(frame)
        except Exception as e:
            raise TransportError(f"send to {self.cfg.url} failed: {e}") from e

    async def recv_text(self) -> str:
        """Next frame as text. Binary frames are decoded as UTF-8."""

        ws = self._require_ws()
        try:
            frame = await ws.recv()
        except Exception as e:
            raise TransportError(f"recv from {self.cfg.url} failed: {e}") from e
        if isinstance(frame, bytes):
            return frame.decode("utf-8", errors="replace")
        return frame
