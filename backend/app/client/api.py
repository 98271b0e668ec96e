from __future__ import annotations

import asyncio
import logging
from typing import Callable

import httpx

from app.client.config import ApiUrl
from app.client.models import Product, Profile, Session, SessionUser, ShoppingItem
from app.client.realtime import RealtimeChannel

logger = logging.getLogger("client.api")

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"


class BackendError(Exception):
    def __init__(self, Message: str, StatusCode: int | None = None):
        super().__init__(Message)
        self.Message = Message
        self.StatusCode = StatusCode


class AuthError(BackendError):
    pass


def _ErrorMessage(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        detail = payload.get("detail")
        if isinstance(detail, str) and detail:
            return detail
        if isinstance(detail, list) and detail:
            messages = [str(entry.get("msg", "")) for entry in detail if isinstance(entry, dict)]
            joined = "; ".join(message for message in messages if message)
            if joined:
                return joined
    return response.text or response.reason_phrase or f"HTTP {response.status_code}"


def _WebSocketBase(base_url: str) -> str:
    if base_url.startswith("https://"):
        return "wss://" + base_url[len("https://"):]
    if base_url.startswith("http://"):
        return "ws://" + base_url[len("http://"):]
    return base_url


class BackendClient:
    """Thin async wrapper over the shopping list HTTP API.

    Holds the current session in memory and notifies listeners registered with
    ``OnAuthStateChange`` whenever it changes.
    """

    def __init__(
        self,
        base_url: str | None = None,
        http: httpx.AsyncClient | None = None,
        join_timeout: float = 10.0,
    ):
        self.BaseUrl = (base_url or ApiUrl()).rstrip("/")
        self.JoinTimeout = join_timeout
        self._Http = http or httpx.AsyncClient(base_url=self.BaseUrl)
        self._Session: Session | None = None
        self._Listeners: list[Callable[[str, Session | None], None]] = []
        self._RefreshLock = asyncio.Lock()

    async def aclose(self) -> None:
        await self._Http.aclose()

    @property
    def Session(self) -> Session | None:
        return self._Session

    @property
    def User(self) -> SessionUser | None:
        return self._Session.User if self._Session else None

    def OnAuthStateChange(self, callback: Callable[[str, Session | None], None]) -> Callable[[], None]:
        self._Listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._Listeners:
                self._Listeners.remove(callback)

        return _unsubscribe

    def _SetSession(self, event: str, session: Session | None) -> None:
        self._Session = session
        for listener in list(self._Listeners):
            try:
                listener(event, session)
            except Exception:  # noqa: BLE001
                logger.exception("auth state listener failed event=%s", event)

    def RestoreSession(self, session: Session) -> None:
        self._SetSession(SIGNED_IN, session)

    async def _Request(
        self,
        method: str,
        path: str,
        authenticated: bool = True,
        retry: bool = True,
        **kwargs,
    ) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        token = None
        if authenticated:
            if self._Session is None:
                raise AuthError("Not signed in", 401)
            token = self._Session.AccessToken
            headers["Authorization"] = f"Bearer {token}"
        try:
            response = await self._Http.request(method, path, headers=dict(headers), **kwargs)
        except httpx.RequestError as exc:
            raise BackendError(f"Request failed: {exc}") from exc
        if response.status_code == 401 and authenticated and retry and await self._RefreshAfterRejection(token):
            headers.pop("Authorization", None)
            return await self._Request(method, path, authenticated=True, retry=False, headers=headers, **kwargs)
        if response.is_error:
            message = _ErrorMessage(response)
            if response.status_code == 401:
                raise AuthError(message, response.status_code)
            raise BackendError(message, response.status_code)
        return response

    async def _RefreshAfterRejection(self, rejected_token: str | None) -> bool:
        """Refresh the session once per rejected access token.

        Concurrent callers rejected with the same token share one refresh.
        Returns whether a usable session is in place afterwards.
        """
        async with self._RefreshLock:
            if self._Session is None:
                return False
            if self._Session.AccessToken != rejected_token:
                return True
            try:
                await self.RefreshSession()
            except BackendError as exc:
                logger.warning("session refresh failed: %s", exc.Message)
                if exc.StatusCode == 401:
                    self._SetSession(SIGNED_OUT, None)
                return False
            logger.info("access token refreshed")
            return True

    async def SignIn(self, email: str, password: str) -> Session:
        try:
            response = await self._Request(
                "POST",
                "/api/auth/signin",
                authenticated=False,
                json={"Email": email, "Password": password},
            )
        except BackendError as exc:
            raise AuthError(exc.Message, exc.StatusCode) from exc
        session = Session.model_validate(response.json())
        self._SetSession(SIGNED_IN, session)
        return session

    async def SignUp(self, email: str, password: str) -> SessionUser:
        try:
            response = await self._Request(
                "POST",
                "/api/auth/signup",
                authenticated=False,
                json={"Email": email, "Password": password},
            )
        except BackendError as exc:
            raise AuthError(exc.Message, exc.StatusCode) from exc
        return SessionUser.model_validate(response.json()["User"])

    async def RefreshSession(self) -> Session:
        if self._Session is None:
            raise AuthError("Not signed in", 401)
        response = await self._Request(
            "POST",
            "/api/auth/refresh",
            authenticated=False,
            json={"RefreshToken": self._Session.RefreshToken},
        )
        session = Session.model_validate(response.json())
        self._SetSession(TOKEN_REFRESHED, session)
        return session

    async def SignOut(self) -> None:
        if self._Session is None:
            return
        try:
            await self._Request(
                "POST",
                "/api/auth/signout",
                json={"RefreshToken": self._Session.RefreshToken},
            )
        except BackendError as exc:
            logger.warning("sign out request failed: %s", exc.Message)
        self._SetSession(SIGNED_OUT, None)

    async def GetSession(self) -> Session | None:
        return self._Session

    async def ListUsers(self, limit: int | None = None) -> list[Profile]:
        params = {"limit": limit} if limit else None
        response = await self._Request("GET", "/api/auth/users", params=params)
        return [Profile.model_validate(entry) for entry in response.json()]

    async def ListShoppingItems(
        self,
        order_by: str = "CreatedAt",
        ascending: bool = True,
        user_id: int | None = None,
        completed: bool | None = None,
    ) -> list[ShoppingItem]:
        params = {"order_by": order_by, "ascending": ascending}
        if user_id is not None:
            params["user_id"] = user_id
        if completed is not None:
            params["completed"] = completed
        response = await self._Request("GET", "/api/shopping/items", params=params)
        return [ShoppingItem.model_validate(entry) for entry in response.json()]

    async def GetShoppingItem(self, item_id: int) -> ShoppingItem:
        response = await self._Request("GET", f"/api/shopping/items/{item_id}")
        return ShoppingItem.model_validate(response.json())

    async def InsertShoppingItem(self, item: str, quantity: str = "") -> ShoppingItem:
        response = await self._Request(
            "POST",
            "/api/shopping/items",
            json={"Item": item, "Quantity": quantity},
        )
        return ShoppingItem.model_validate(response.json())

    async def UpdateShoppingItem(self, item_id: int, **updates) -> ShoppingItem:
        response = await self._Request("PATCH", f"/api/shopping/items/{item_id}", json=updates)
        return ShoppingItem.model_validate(response.json())

    async def DeleteShoppingItem(self, item_id: int) -> None:
        await self._Request("DELETE", f"/api/shopping/items/{item_id}")

    async def ListProducts(
        self,
        order_by: str = "Name",
        ascending: bool = True,
        category: str | None = None,
    ) -> list[Product]:
        params = {"order_by": order_by, "ascending": ascending}
        if category:
            params["category"] = category
        response = await self._Request("GET", "/api/catalog/products", params=params)
        return [Product.model_validate(entry) for entry in response.json()]

    async def InsertProduct(self, fields: dict) -> Product:
        response = await self._Request("POST", "/api/catalog/products", json=fields)
        return Product.model_validate(response.json())

    async def UpdateProduct(self, product_id: int, fields: dict) -> Product:
        response = await self._Request("PUT", f"/api/catalog/products/{product_id}", json=fields)
        return Product.model_validate(response.json())

    async def DeleteProduct(self, product_id: int) -> None:
        await self._Request("DELETE", f"/api/catalog/products/{product_id}")

    def RealtimeUrl(self, name: str) -> str:
        token = self._Session.AccessToken if self._Session else ""
        return f"{_WebSocketBase(self.BaseUrl)}/api/realtime/ws/{name}?token={token}"

    def Channel(self, name: str, presence_key: str | None = None) -> RealtimeChannel:
        return RealtimeChannel(
            self.RealtimeUrl(name),
            name,
            presence_key=presence_key,
            join_timeout=self.JoinTimeout,
        )
