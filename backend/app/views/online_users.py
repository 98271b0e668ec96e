import logging

from pydantic import ValidationError

from app.client.api import BackendError
from app.client.models import OnlineUser, SessionUser
from app.client.realtime import ChannelError
from app.views.base import NowUtc, SyncedView

logger = logging.getLogger("views.online_users")

MISSING_EMAIL = "User without email"


def UsersFromPresenceState(state: dict[str, list[dict]], current_user_id: int | None) -> list[OnlineUser]:
    """One entry per presence key, taken from the key's first payload."""
    users: list[OnlineUser] = []
    for key, payloads in (state or {}).items():
        if not payloads:
            continue
        payload = payloads[0]
        try:
            user = OnlineUser(
                Id=payload.get("Id", key),
                Email=payload.get("Email") or MISSING_EMAIL,
                OnlineAt=payload.get("OnlineAt") or NowUtc(),
                IsCurrentUser=False,
            )
        except ValidationError:
            logger.warning("ignoring malformed presence payload key=%s", key)
            continue
        user.IsCurrentUser = current_user_id is not None and user.Id == current_user_id
        users.append(user)
    users.sort(key=lambda entry: (entry.Email.lower(), entry.Id))
    return users


class OnlineUsersView(SyncedView):
    ChannelName = "online-users"
    Polls = False

    def __init__(self, client, user: SessionUser | None, settings=None, prompter=None):
        super().__init__(client, settings=settings, prompter=prompter)
        self.User = user
        self.Users: list[OnlineUser] = []

    async def Load(self) -> None:
        self.Loading = False

    def BuildChannel(self):
        presence_key = str(self.User.Id) if self.User is not None else None
        channel = self.Client.Channel(self.ChannelName, presence_key=presence_key)
        channel.OnPresence("sync", self.HandleSync)
        return channel

    def HandleSync(self, state: dict[str, list[dict]]) -> None:
        self.Users = UsersFromPresenceState(state, self.User.Id if self.User else None)
        self.Touch()

    async def OnSubscribed(self) -> None:
        if self.User is None or self.Channel is None:
            return
        payload = {
            "Id": self.User.Id,
            "Email": self.User.Email,
            "OnlineAt": NowUtc().isoformat(),
        }
        try:
            await self.Channel.Track(payload)
        except (ChannelError, BackendError) as exc:
            logger.warning("failed to track presence: %s", exc)
