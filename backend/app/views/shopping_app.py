import asyncio
import logging

from app.client.config import SyncSettings
from app.client.models import Session, SessionUser
from app.views.auth_gate import AuthGate
from app.views.catalog import CatalogView
from app.views.online_users import OnlineUsersView
from app.views.prompts import ConsolePrompter
from app.views.shopping_list import ShoppingListView

logger = logging.getLogger("views.app")

SHOPPING_TAB = "shopping"
CATALOG_TAB = "catalog"
TABS = (SHOPPING_TAB, CATALOG_TAB)


class ShoppingApp:
    """Top-level shell: auth gate when signed out, tab views when signed in."""

    def __init__(self, client, settings: SyncSettings | None = None, prompter=None):
        self.Client = client
        self.Settings = settings or SyncSettings.FromEnv()
        self.Prompter = prompter or ConsolePrompter()
        self.Gate = AuthGate(client)
        self.User: SessionUser | None = None
        self.Loading = True
        self.ActiveView = SHOPPING_TAB
        self.Views: dict = {}
        self._StopListening = None
        self._Tasks: set[asyncio.Task] = set()
        self._Lock = asyncio.Lock()

    async def Start(self) -> None:
        self._StopListening = self.Client.OnAuthStateChange(self._OnAuthStateChange)
        session = await self.Client.GetSession()
        await self._ApplyUser(session.User if session else None)
        self.Loading = False

    async def Stop(self) -> None:
        if self._StopListening is not None:
            self._StopListening()
            self._StopListening = None
        await self.Drain()
        async with self._Lock:
            await self._UnmountAll()

    async def Drain(self) -> None:
        while self._Tasks:
            await asyncio.gather(*list(self._Tasks), return_exceptions=True)

    def _OnAuthStateChange(self, event: str, session: Session | None) -> None:
        logger.info("auth state changed event=%s", event)
        task = asyncio.create_task(self._ApplyUser(session.User if session else None))
        self._Tasks.add(task)
        task.add_done_callback(self._Tasks.discard)

    async def _ApplyUser(self, user: SessionUser | None) -> None:
        async with self._Lock:
            same = (self.User is None and user is None) or (
                self.User is not None and user is not None and self.User.Id == user.Id
            )
            if same:
                return
            await self._UnmountAll()
            self.User = user
            if user is not None:
                await self._MountActive()

    async def SetActiveView(self, name: str) -> None:
        if name not in TABS:
            raise ValueError(f"Unknown view: {name}")
        async with self._Lock:
            if name == self.ActiveView:
                return
            await self._UnmountAll()
            self.ActiveView = name
            if self.User is not None:
                await self._MountActive()

    async def SignOut(self) -> None:
        await self.Client.SignOut()
        await self._ApplyUser(None)

    def _BuildViews(self) -> dict:
        options = {"settings": self.Settings, "prompter": self.Prompter}
        if self.ActiveView == CATALOG_TAB:
            return {CATALOG_TAB: CatalogView(self.Client, self.User, **options)}
        return {
            SHOPPING_TAB: ShoppingListView(self.Client, self.User, **options),
            "online": OnlineUsersView(self.Client, self.User, **options),
        }

    async def _MountActive(self) -> None:
        self.Views = self._BuildViews()
        for name, view in self.Views.items():
            logger.info("mounting view=%s user_id=%s", name, self.User.Id if self.User else None)
            await view.Mount()

    async def _UnmountAll(self) -> None:
        views = self.Views
        self.Views = {}
        for view in views.values():
            await view.Unmount()
