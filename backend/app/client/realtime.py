"""WebSocket channel for row-change events and presence.

A channel is configured with ``OnChange``/``OnPresence`` before ``Subscribe``.
Status callbacks receive one of ``SUBSCRIBED``, ``CHANNEL_ERROR``,
``TIMED_OUT`` or ``CLOSED``; the channel never reconnects by itself.
"""

import asyncio
import inspect
import json
import logging
from typing import Any, Callable

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

logger = logging.getLogger("client.realtime")

SUBSCRIBED = "SUBSCRIBED"
CHANNEL_ERROR = "CHANNEL_ERROR"
TIMED_OUT = "TIMED_OUT"
CLOSED = "CLOSED"
WILDCARD_EVENT = "*"


class ChannelError(Exception):
    pass


async def _Invoke(callback: Callable | None, *args) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class RealtimeChannel:
    def __init__(
        self,
        url: str,
        name: str,
        presence_key: str | None = None,
        join_timeout: float = 10.0,
        connect: Callable[[str], Any] | None = None,
    ):
        self.Url = url
        self.Name = name
        self.PresenceKey = presence_key
        self.JoinTimeout = join_timeout
        self.Status: str | None = None
        self._Connect = connect or websockets.connect
        self._ChangeHandlers: list[tuple[str, str, Callable]] = []
        self._PresenceHandlers: dict[str, list[Callable]] = {}
        self._State: dict[str, list[dict]] = {}
        self._StatusCallback: Callable | None = None
        self._Socket = None
        self._Task: asyncio.Task | None = None
        self._Closing = False

    def OnChange(self, table: str, event: str, handler: Callable) -> "RealtimeChannel":
        self._ChangeHandlers.append((table, event.upper(), handler))
        return self

    def OnPresence(self, event: str, handler: Callable) -> "RealtimeChannel":
        self._PresenceHandlers.setdefault(event.lower(), []).append(handler)
        return self

    def PresenceState(self) -> dict[str, list[dict]]:
        return {key: list(payloads) for key, payloads in self._State.items()}

    async def Subscribe(self, callback: Callable | None = None) -> "RealtimeChannel":
        if self._Task is not None:
            raise ChannelError(f"Channel {self.Name} already subscribed")
        self._StatusCallback = callback
        self._Task = asyncio.create_task(self._Run(), name=f"realtime-{self.Name}")
        return self

    async def Track(self, payload: dict) -> None:
        if self._Socket is None or self.Status != SUBSCRIBED:
            raise ChannelError(f"Channel {self.Name} is not subscribed")
        await self._Socket.send(json.dumps({"Type": "track", "Payload": payload}))

    async def Unsubscribe(self) -> None:
        self._Closing = True
        socket = self._Socket
        if socket is not None:
            try:
                await socket.send(json.dumps({"Type": "leave"}))
                await socket.close()
            except (ConnectionClosed, OSError):
                logger.debug("channel %s already closed", self.Name)
        task = self._Task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self.Status != CLOSED:
            await self._Report(CLOSED)

    def _JoinMessage(self) -> dict:
        changes = [{"Table": table, "Event": event} for table, event, _handler in self._ChangeHandlers]
        return {"Type": "join", "Changes": changes, "PresenceKey": self.PresenceKey}

    async def _Report(self, status: str, error: BaseException | None = None) -> None:
        self.Status = status
        if error is not None:
            logger.warning("channel %s status %s: %s", self.Name, status, error)
        else:
            logger.info("channel %s status %s", self.Name, status)
        try:
            await _Invoke(self._StatusCallback, status)
        except Exception:  # noqa: BLE001
            logger.exception("channel %s status callback failed", self.Name)

    async def _AwaitAck(self, socket) -> None:
        while True:
            message = json.loads(await socket.recv())
            message_type = message.get("Type")
            if message_type == "status" and message.get("Status") == SUBSCRIBED:
                return
            if message_type == "error":
                raise ChannelError(message.get("Message") or "join rejected")
            await self._Dispatch(message)

    async def _Run(self) -> None:
        try:
            socket = await self._Connect(self.Url)
        except (OSError, WebSocketException) as exc:
            await self._Report(CHANNEL_ERROR, exc)
            return

        self._Socket = socket
        try:
            await socket.send(json.dumps(self._JoinMessage()))
            try:
                await asyncio.wait_for(self._AwaitAck(socket), timeout=self.JoinTimeout)
            except asyncio.TimeoutError:
                await self._Close(socket)
                await self._Report(TIMED_OUT)
                return
            await self._Report(SUBSCRIBED)
            async for raw in socket:
                await self._Dispatch(json.loads(raw))
            if not self._Closing:
                await self._Report(CHANNEL_ERROR, ChannelError("connection closed by server"))
        except (ConnectionClosed, ChannelError, OSError, ValueError) as exc:
            if not self._Closing:
                await self._Report(CHANNEL_ERROR, exc)

    async def _Close(self, socket) -> None:
        try:
            await socket.close()
        except (ConnectionClosed, OSError):
            pass

    async def _Dispatch(self, message: dict) -> None:
        message_type = message.get("Type")
        if message_type == "change":
            await self._DispatchChange(message)
        elif message_type == "presence":
            await self._DispatchPresence(message)
        elif message_type == "error":
            logger.warning("channel %s error: %s", self.Name, message.get("Message"))

    async def _DispatchChange(self, message: dict) -> None:
        table = message.get("Table")
        event = message.get("Event")
        for handler_table, handler_event, handler in list(self._ChangeHandlers):
            if handler_table != table:
                continue
            if handler_event not in (WILDCARD_EVENT, event):
                continue
            try:
                await _Invoke(handler, message)
            except Exception:  # noqa: BLE001
                logger.exception("channel %s change handler failed table=%s event=%s", self.Name, table, event)

    async def _DispatchPresence(self, message: dict) -> None:
        event = str(message.get("Event") or "").lower()
        if event == "sync":
            self._State = {key: list(payloads) for key, payloads in (message.get("State") or {}).items()}
            args = (self.PresenceState(),)
        else:
            args = (message.get("Key"), message.get("Payloads") or [])
        for handler in list(self._PresenceHandlers.get(event, [])):
            try:
                await _Invoke(handler, *args)
            except Exception:  # noqa: BLE001
                logger.exception("channel %s presence handler failed event=%s", self.Name, event)
