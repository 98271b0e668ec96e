import logging

from app.client.api import BackendError
from app.client.models import OnlineUser, SessionUser
from app.views.base import NowUtc, SyncedView

logger = logging.getLogger("views.user_list")

PROFILES_TABLE = "profiles"
USER_LIMIT = 4


class RegisteredUsersView(SyncedView):
    """Older "online users" panel that lists registered accounts.

    Superseded by ``OnlineUsersView``; every entry is stamped with the
    fetch time rather than a real presence timestamp.
    """

    ChannelName = "online_users"

    def __init__(self, client, user: SessionUser | None, settings=None, prompter=None):
        super().__init__(client, settings=settings, prompter=prompter)
        self.User = user
        self.Users: list[OnlineUser] = []

    async def Load(self) -> None:
        try:
            profiles = await self.Client.ListUsers(limit=USER_LIMIT)
        except BackendError as exc:
            logger.warning("failed to load registered users: %s", exc.Message)
            return
        finally:
            self.Loading = False
        fetched_at = NowUtc()
        current_id = self.User.Id if self.User else None
        self.Users = [
            OnlineUser(
                Id=profile.Id,
                Email=profile.Email,
                OnlineAt=fetched_at,
                IsCurrentUser=profile.Id == current_id,
            )
            for profile in profiles
        ]
        self.Touch()

    def BuildChannel(self):
        channel = self.Client.Channel(self.ChannelName)
        channel.OnChange(PROFILES_TABLE, "*", self.HandleChange)
        return channel

    async def HandleChange(self, message: dict) -> None:
        await self.Load()
