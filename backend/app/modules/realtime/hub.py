"""In-process change feed and presence hub for the realtime WebSocket endpoint.

Route handlers run in FastAPI's threadpool, so ``PublishChange`` hands each
row-change event to the event loop that owns the sockets.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger("realtime.hub")

CHANGE_EVENTS = {"INSERT", "UPDATE", "DELETE"}
WILDCARD_EVENT = "*"


@dataclass(eq=False)
class Subscriber:
    Socket: Any
    Channel: str
    UserId: int
    Changes: set[tuple[str, str]] = field(default_factory=set)
    PresenceKey: str | None = None
    Payload: dict | None = None

    def Matches(self, table: str, event: str) -> bool:
        return (table, event) in self.Changes or (table, WILDCARD_EVENT) in self.Changes


def NormalizeChangeFilters(raw_filters: list | None) -> set[tuple[str, str]]:
    filters: set[tuple[str, str]] = set()
    for entry in raw_filters or []:
        if not isinstance(entry, dict):
            raise ValueError("Change filters must be objects")
        table = str(entry.get("Table") or "").strip()
        event = str(entry.get("Event") or WILDCARD_EVENT).strip().upper()
        if not table:
            raise ValueError("Change filter requires a table")
        if event != WILDCARD_EVENT and event not in CHANGE_EVENTS:
            raise ValueError(f"Unsupported change event: {event}")
        filters.add((table, event))
    return filters


class RealtimeHub:
    def __init__(self):
        self._Channels: dict[str, list[Subscriber]] = {}
        self._Loop: asyncio.AbstractEventLoop | None = None

    def BindLoop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._Loop = loop

    def Subscribers(self, channel: str | None = None) -> list[Subscriber]:
        if channel is not None:
            return list(self._Channels.get(channel, []))
        return [entry for members in self._Channels.values() for entry in members]

    def PresenceState(self, channel: str) -> dict[str, list[dict]]:
        state: dict[str, list[dict]] = {}
        for entry in self._Channels.get(channel, []):
            if entry.PresenceKey is None or entry.Payload is None:
                continue
            state.setdefault(entry.PresenceKey, []).append(entry.Payload)
        return state

    async def Join(self, subscriber: Subscriber) -> None:
        self.BindLoop(asyncio.get_running_loop())
        members = self._Channels.setdefault(subscriber.Channel, [])
        if subscriber not in members:
            members.append(subscriber)
        logger.debug(
            "subscriber joined channel=%s user_id=%s members=%s",
            subscriber.Channel,
            subscriber.UserId,
            len(members),
        )

    async def Track(self, subscriber: Subscriber, payload: dict) -> None:
        if subscriber.PresenceKey is None:
            raise ValueError("Presence key not set for this subscription")
        subscriber.Payload = dict(payload)
        await self._BroadcastPresence(subscriber.Channel, "join", subscriber.PresenceKey, [subscriber.Payload])

    async def Untrack(self, subscriber: Subscriber) -> None:
        if subscriber.Payload is None:
            return
        payload = subscriber.Payload
        subscriber.Payload = None
        await self._BroadcastPresence(subscriber.Channel, "leave", subscriber.PresenceKey, [payload])

    async def Leave(self, subscriber: Subscriber) -> None:
        members = self._Channels.get(subscriber.Channel, [])
        if subscriber in members:
            members.remove(subscriber)
        if not members:
            self._Channels.pop(subscriber.Channel, None)
        if subscriber.Payload is not None:
            payload = subscriber.Payload
            subscriber.Payload = None
            await self._BroadcastPresence(subscriber.Channel, "leave", subscriber.PresenceKey, [payload])
        logger.debug("subscriber left channel=%s user_id=%s", subscriber.Channel, subscriber.UserId)

    async def SendSync(self, subscriber: Subscriber) -> None:
        await self._Send(
            subscriber,
            {"Type": "presence", "Event": "sync", "State": self.PresenceState(subscriber.Channel)},
        )

    def PublishChange(self, table: str, event: str, new: dict | None = None, old: dict | None = None) -> None:
        if event not in CHANGE_EVENTS:
            raise ValueError(f"Unsupported change event: {event}")
        loop = self._Loop
        if loop is None or loop.is_closed() or not self._Channels:
            return
        message = {
            "Type": "change",
            "Table": table,
            "Event": event,
            "New": new or {},
            "Old": old or {},
        }
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            loop.create_task(self.BroadcastChange(message))
        else:
            asyncio.run_coroutine_threadsafe(self.BroadcastChange(message), loop)

    async def BroadcastChange(self, message: dict) -> None:
        table = message["Table"]
        event = message["Event"]
        for subscriber in self.Subscribers():
            if subscriber.Matches(table, event):
                await self._Send(subscriber, message)

    async def _BroadcastPresence(self, channel: str, event: str, key: str | None, payloads: list[dict]) -> None:
        change = {"Type": "presence", "Event": event, "Key": key, "Payloads": payloads}
        sync = {"Type": "presence", "Event": "sync", "State": self.PresenceState(channel)}
        for subscriber in self.Subscribers(channel):
            await self._Send(subscriber, change)
            await self._Send(subscriber, sync)

    async def _Send(self, subscriber: Subscriber, message: dict) -> None:
        try:
            await subscriber.Socket.send_json(message)
        except Exception:  # noqa: BLE001
            logger.warning(
                "dropping subscriber after failed send channel=%s user_id=%s",
                subscriber.Channel,
                subscriber.UserId,
                exc_info=True,
            )
            members = self._Channels.get(subscriber.Channel, [])
            if subscriber in members:
                members.remove(subscriber)
            if not members:
                self._Channels.pop(subscriber.Channel, None)


hub = RealtimeHub()
