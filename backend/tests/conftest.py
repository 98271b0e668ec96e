import inspect
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.client.api import AuthError, BackendError, SIGNED_IN, SIGNED_OUT
from app.client.config import SyncSettings
from app.client.models import Product, Profile, Session, SessionUser, ShoppingItem
from app.db import Base, GetDb
from app.modules.auth import models as auth_models  # noqa: F401
from app.modules.auth.router import router as auth_router
from app.modules.catalog import models as catalog_models  # noqa: F401
from app.modules.catalog.router import router as catalog_router
from app.modules.core.router import router as core_router
from app.modules.realtime.router import router as realtime_router
from app.modules.shopping import models as shopping_models  # noqa: F401
from app.modules.shopping.router import router as shopping_router

BASE_TIME = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
VALID_PASSWORD = "secret123"


class FakeChannel:
    def __init__(self, name, presence_key=None):
        self.Name = name
        self.PresenceKey = presence_key
        self.ChangeHandlers = []
        self.PresenceHandlers = {}
        self.StatusCallback = None
        self.Subscribed = False
        self.Closed = False
        self.Tracked = []

    def OnChange(self, table, event, handler):
        self.ChangeHandlers.append((table, event.upper(), handler))
        return self

    def OnPresence(self, event, handler):
        self.PresenceHandlers.setdefault(event, []).append(handler)
        return self

    async def Subscribe(self, callback=None):
        self.StatusCallback = callback
        self.Subscribed = True
        return self

    async def Unsubscribe(self):
        self.Closed = True

    async def Track(self, payload):
        self.Tracked.append(payload)

    def EmitStatus(self, status):
        self.StatusCallback(status)

    async def EmitChange(self, table, event, new=None, old=None):
        message = {"Type": "change", "Table": table, "Event": event, "New": new or {}, "Old": old or {}}
        for handler_table, handler_event, handler in list(self.ChangeHandlers):
            if handler_table == table and handler_event in ("*", event):
                result = handler(message)
                if inspect.isawaitable(result):
                    await result

    async def EmitSync(self, state):
        for handler in self.PresenceHandlers.get("sync", []):
            result = handler(state)
            if inspect.isawaitable(result):
                await result


class FakeBackend:
    """In-memory stand-in for BackendClient used by the view tests."""

    def __init__(self, user=None):
        self.CurrentUser = user or SessionUser(Id=1, Email="alice@example.com")
        self.Emails = {1: "alice@example.com", 2: "bob@example.com"}
        self.Items: dict[int, ShoppingItem] = {}
        self.Products: dict[int, Product] = {}
        self.Channels: list[FakeChannel] = []
        self.Calls: list[str] = []
        self.Failures: dict[str, BackendError] = {}
        self.Listeners = []
        self._Session = None
        self._NextId = 100
        self._Tick = 0

    def _Now(self):
        self._Tick += 1
        return BASE_TIME + timedelta(minutes=self._Tick)

    def _Check(self, operation):
        self.Calls.append(operation)
        error = self.Failures.pop(operation, None)
        if error is not None:
            raise error

    def Fail(self, operation, message="Network request failed", status_code=500):
        self.Failures[operation] = BackendError(message, status_code)

    def SeedItem(self, label, user_id=1, completed=False, quantity=""):
        self._NextId += 1
        record = ShoppingItem(
            Id=self._NextId,
            CreatedAt=self._Now(),
            Item=label,
            Quantity=quantity,
            UserId=user_id,
            Completed=completed,
            OwnerEmail=self.Emails.get(user_id),
        )
        self.Items[record.Id] = record
        return record

    def SeedProduct(self, name, user_id=1, price=None, category=None, description=None):
        self._NextId += 1
        record = Product(
            Id=self._NextId,
            CreatedAt=self._Now(),
            Name=name,
            Price=price,
            Category=category,
            Description=description,
            UserId=user_id,
        )
        self.Products[record.Id] = record
        return record

    @property
    def User(self):
        return self._Session.User if self._Session else None

    def OnAuthStateChange(self, callback):
        self.Listeners.append(callback)

        def _unsubscribe():
            if callback in self.Listeners:
                self.Listeners.remove(callback)

        return _unsubscribe

    def _Emit(self, event, session):
        self._Session = session
        for listener in list(self.Listeners):
            listener(event, session)

    async def GetSession(self):
        return self._Session

    def StoreSession(self):
        self._Session = Session(AccessToken="access", RefreshToken="refresh", ExpiresIn=3600, User=self.CurrentUser)

    async def SignIn(self, email, password):
        self._Check("SignIn")
        if password != VALID_PASSWORD:
            raise AuthError("Invalid login credentials", 401)
        session = Session(AccessToken="access", RefreshToken="refresh", ExpiresIn=3600, User=self.CurrentUser)
        self._Emit(SIGNED_IN, session)
        return session

    async def SignUp(self, email, password):
        self._Check("SignUp")
        return SessionUser(Id=9, Email=email)

    async def SignOut(self):
        self._Check("SignOut")
        self._Emit(SIGNED_OUT, None)

    async def ListUsers(self, limit=None):
        self._Check("ListUsers")
        profiles = [Profile(Id=user_id, Email=email, CreatedAt=BASE_TIME) for user_id, email in sorted(self.Emails.items())]
        return profiles[:limit] if limit else profiles

    async def ListShoppingItems(self, order_by="CreatedAt", ascending=True, user_id=None, completed=None):
        self._Check("ListShoppingItems")
        return sorted((entry.model_copy() for entry in self.Items.values()), key=lambda entry: entry.SortKey())

    async def GetShoppingItem(self, item_id):
        self._Check("GetShoppingItem")
        record = self.Items.get(item_id)
        if record is None:
            raise BackendError("Shopping item not found", 404)
        return record.model_copy()

    async def InsertShoppingItem(self, item, quantity=""):
        self._Check("InsertShoppingItem")
        self._NextId += 1
        record = ShoppingItem(
            Id=self._NextId,
            CreatedAt=self._Now(),
            Item=item,
            Quantity=quantity,
            UserId=self.CurrentUser.Id,
            Completed=False,
            OwnerEmail=self.CurrentUser.Email,
        )
        self.Items[record.Id] = record
        return record.model_copy()

    async def UpdateShoppingItem(self, item_id, **updates):
        self._Check("UpdateShoppingItem")
        record = self.Items.get(item_id)
        if record is None:
            raise BackendError("Shopping item not found", 404)
        record = record.model_copy(update=updates)
        self.Items[item_id] = record
        return record.model_copy()

    async def DeleteShoppingItem(self, item_id):
        self._Check("DeleteShoppingItem")
        self.Items.pop(item_id, None)

    async def ListProducts(self, order_by="Name", ascending=True, category=None):
        self._Check("ListProducts")
        return sorted((entry.model_copy() for entry in self.Products.values()), key=lambda entry: entry.Name)

    async def InsertProduct(self, fields):
        self._Check("InsertProduct")
        self._NextId += 1
        record = Product(Id=self._NextId, CreatedAt=self._Now(), UserId=self.CurrentUser.Id, **fields)
        self.Products[record.Id] = record
        return record.model_copy()

    async def UpdateProduct(self, product_id, fields):
        self._Check("UpdateProduct")
        record = self.Products[product_id].model_copy(update=fields)
        self.Products[product_id] = record
        return record.model_copy()

    async def DeleteProduct(self, product_id):
        self._Check("DeleteProduct")
        self.Products.pop(product_id, None)

    def Channel(self, name, presence_key=None):
        channel = FakeChannel(name, presence_key)
        self.Channels.append(channel)
        return channel


class RecordingPrompter:
    def __init__(self, confirm=True):
        self.Alerts = []
        self.Confirms = []
        self._Confirm = confirm

    def Alert(self, message):
        self.Alerts.append(message)

    def Confirm(self, message):
        self.Confirms.append(message)
        return self._Confirm


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def prompter():
    return RecordingPrompter()


@pytest.fixture
def declining_prompter():
    return RecordingPrompter(confirm=False)


@pytest.fixture
def sync_settings():
    return SyncSettings(
        PollInterval=None,
        ReconnectDelay=0.0,
        MaxReconnectAttempts=3,
        CorrectionDelay=0.0,
        JoinTimeout=1.0,
    )


@pytest.fixture
def auth_env(monkeypatch):
    monkeypatch.setenv("JWT_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
    monkeypatch.setenv("JWT_ACCESS_TTL_MINUTES", "15")
    monkeypatch.setenv("JWT_REFRESH_TTL_DAYS", "7")
    monkeypatch.delenv("AUTH_PASSWORD_MIN_LENGTH", raising=False)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    yield factory
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def api_client(auth_env, session_factory):
    app = FastAPI()
    for router in (core_router, auth_router, shopping_router, catalog_router, realtime_router):
        app.include_router(router)

    def _override_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[GetDb] = _override_db
    with TestClient(app) as client:
        yield client


@pytest.fixture
def sign_in(api_client):
    """Register an account and return its bearer headers and session body."""

    def _sign_in(email, password=VALID_PASSWORD):
        response = api_client.post("/api/auth/signup", json={"Email": email, "Password": password})
        assert response.status_code == 201, response.text
        response = api_client.post("/api/auth/signin", json={"Email": email, "Password": password})
        assert response.status_code == 200, response.text
        session = response.json()
        return {"Authorization": f"Bearer {session['AccessToken']}"}, session

    return _sign_in
