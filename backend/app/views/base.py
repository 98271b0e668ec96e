"""Shared lifecycle for views that mirror remote state.

A mounted view owns three cancelable resources: the realtime channel, the
fallback poll task, and short-lived background tasks (reconnects and
corrective re-fetches). ``Unmount`` releases all of them.
"""

import asyncio
import logging
from datetime import datetime, timezone

from app.client.config import SyncSettings
from app.client.realtime import CHANNEL_ERROR, SUBSCRIBED, TIMED_OUT
from app.views.prompts import ConsolePrompter

logger = logging.getLogger("views.base")


def NowUtc() -> datetime:
    return datetime.now(tz=timezone.utc)


class SyncedView:
    ChannelName = ""
    Polls = True

    def __init__(self, client, settings: SyncSettings | None = None, prompter=None):
        self.Client = client
        self.Settings = settings or SyncSettings.FromEnv()
        self.Prompter = prompter or ConsolePrompter()
        self.Mounted = False
        self.Loading = True
        self.LastUpdate: datetime | None = None
        self.Channel = None
        self.ReconnectAttempts = 0
        self.PollingFallback = False
        self._PollTask: asyncio.Task | None = None
        self._Tasks: set[asyncio.Task] = set()

    async def Load(self) -> None:
        raise NotImplementedError

    def BuildChannel(self):
        raise NotImplementedError

    async def OnSubscribed(self) -> None:
        return None

    def Touch(self) -> None:
        self.LastUpdate = NowUtc()

    async def Mount(self) -> None:
        if self.Mounted:
            return
        self.Mounted = True
        await self.Load()
        await self._OpenChannel()
        if self.Polls and self.Settings.PollInterval:
            self._PollTask = asyncio.create_task(self._PollLoop(), name=f"poll-{self.ChannelName}")

    async def Unmount(self) -> None:
        self.Mounted = False
        if self._PollTask is not None:
            self._PollTask.cancel()
            try:
                await self._PollTask
            except asyncio.CancelledError:
                pass
            self._PollTask = None
        for task in list(self._Tasks):
            task.cancel()
        if self._Tasks:
            await asyncio.gather(*list(self._Tasks), return_exceptions=True)
        channel = self.Channel
        self.Channel = None
        if channel is not None:
            await channel.Unsubscribe()

    async def Refresh(self) -> None:
        self.Loading = True
        await self.Load()

    def Spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._Tasks.add(task)
        task.add_done_callback(self._TaskDone)
        return task

    def _TaskDone(self, task: asyncio.Task) -> None:
        self._Tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("background task failed view=%s", self.ChannelName, exc_info=error)

    async def Drain(self) -> None:
        while self._Tasks:
            await asyncio.gather(*list(self._Tasks), return_exceptions=True)

    def ScheduleRefetch(self, delay: float | None = None) -> asyncio.Task:
        wait = self.Settings.CorrectionDelay if delay is None else delay
        return self.Spawn(self._DelayedLoad(wait))

    async def _DelayedLoad(self, delay: float) -> None:
        await asyncio.sleep(delay)
        if self.Mounted:
            await self.Load()

    async def _PollLoop(self) -> None:
        while self.Mounted:
            await asyncio.sleep(self.Settings.PollInterval)
            if not self.Mounted:
                break
            await self.Load()

    async def _OpenChannel(self) -> None:
        channel = self.BuildChannel()
        self.Channel = channel

        def _on_status(status: str) -> None:
            self._HandleStatus(channel, status)

        await channel.Subscribe(_on_status)

    def _HandleStatus(self, channel, status: str) -> None:
        if channel is not self.Channel or not self.Mounted:
            return
        logger.info("subscription status view=%s status=%s", self.ChannelName, status)
        if status == SUBSCRIBED:
            self.ReconnectAttempts = 0
            self.PollingFallback = False
            self.Spawn(self.OnSubscribed())
        elif status in (CHANNEL_ERROR, TIMED_OUT):
            self._ScheduleReconnect()

    def _ScheduleReconnect(self) -> None:
        if self.ReconnectAttempts >= self.Settings.MaxReconnectAttempts:
            if not self.PollingFallback:
                logger.warning(
                    "subscription gave up after %s attempts view=%s; relying on polling",
                    self.ReconnectAttempts,
                    self.ChannelName,
                )
            self.PollingFallback = True
            return
        self.ReconnectAttempts += 1
        delay = self.ReconnectAttempts * self.Settings.ReconnectDelay
        logger.info(
            "reconnecting view=%s attempt=%s delay=%ss",
            self.ChannelName,
            self.ReconnectAttempts,
            delay,
        )
        self.Spawn(self._Reconnect(delay))

    async def _Reconnect(self, delay: float) -> None:
        await asyncio.sleep(delay)
        if not self.Mounted:
            return
        previous = self.Channel
        self.Channel = None
        if previous is not None:
            await previous.Unsubscribe()
        await self._OpenChannel()
