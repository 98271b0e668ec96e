import json

import httpx
import pytest

from app.client.api import SIGNED_IN, SIGNED_OUT, AuthError, BackendClient, BackendError

SESSION_BODY = {
    "AccessToken": "access-token",
    "RefreshToken": "refresh-token",
    "TokenType": "bearer",
    "ExpiresIn": 900,
    "User": {"Id": 1, "Email": "alice@example.com"},
}
ITEM_BODY = {
    "Id": 7,
    "CreatedAt": "2024-05-01T09:00:00",
    "Item": "Milk",
    "Quantity": "",
    "UserId": 1,
    "Completed": False,
    "OwnerEmail": "alice@example.com",
}


def _client(handler):
    transport = httpx.MockTransport(handler)
    http = httpx.AsyncClient(base_url="http://shoplist.test", transport=transport)
    return BackendClient(base_url="http://shoplist.test", http=http)


@pytest.mark.asyncio
async def test_sign_in_stores_session_and_notifies_listeners():
    def _handler(request):
        assert request.url.path == "/api/auth/signin"
        assert json.loads(request.content) == {"Email": "alice@example.com", "Password": "secret123"}
        return httpx.Response(200, json=SESSION_BODY)

    client = _client(_handler)
    events = []
    unsubscribe = client.OnAuthStateChange(lambda event, session: events.append((event, session)))

    session = await client.SignIn("alice@example.com", "secret123")

    assert client.User.Email == "alice@example.com"
    assert events == [(SIGNED_IN, session)]
    unsubscribe()
    await client.aclose()


@pytest.mark.asyncio
async def test_sign_in_failure_carries_service_message():
    client = _client(lambda request: httpx.Response(401, json={"detail": "Invalid login credentials"}))

    with pytest.raises(AuthError) as exc_info:
        await client.SignIn("alice@example.com", "wrong")

    assert exc_info.value.Message == "Invalid login credentials"
    assert exc_info.value.StatusCode == 401
    assert client.Session is None
    await client.aclose()


@pytest.mark.asyncio
async def test_authenticated_calls_send_bearer_token():
    seen = []

    def _handler(request):
        if request.url.path == "/api/auth/signin":
            return httpx.Response(200, json=SESSION_BODY)
        seen.append((request.headers.get("Authorization"), dict(request.url.params)))
        return httpx.Response(200, json=[ITEM_BODY])

    client = _client(_handler)
    await client.SignIn("alice@example.com", "secret123")

    items = await client.ListShoppingItems(completed=False)

    assert seen == [("Bearer access-token", {"order_by": "CreatedAt", "ascending": "true", "completed": "false"})]
    assert items[0].Id == 7
    assert items[0].CreatedAt.tzinfo is not None
    await client.aclose()


@pytest.mark.asyncio
async def test_calls_without_session_fail_fast():
    client = _client(lambda request: httpx.Response(500))

    with pytest.raises(AuthError):
        await client.ListShoppingItems()
    await client.aclose()


@pytest.mark.asyncio
async def test_error_detail_becomes_backend_error():
    def _handler(request):
        if request.url.path == "/api/auth/signin":
            return httpx.Response(200, json=SESSION_BODY)
        return httpx.Response(403, json={"detail": "Only the owner can delete this item"})

    client = _client(_handler)
    await client.SignIn("alice@example.com", "secret123")

    with pytest.raises(BackendError) as exc_info:
        await client.DeleteShoppingItem(7)

    assert exc_info.value.Message == "Only the owner can delete this item"
    assert exc_info.value.StatusCode == 403
    await client.aclose()


@pytest.mark.asyncio
async def test_transport_error_becomes_backend_error():
    def _handler(request):
        if request.url.path == "/api/auth/signin":
            return httpx.Response(200, json=SESSION_BODY)
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(_handler)
    await client.SignIn("alice@example.com", "secret123")

    with pytest.raises(BackendError) as exc_info:
        await client.InsertShoppingItem("Milk")

    assert "connection refused" in exc_info.value.Message
    await client.aclose()


@pytest.mark.asyncio
async def test_sign_out_clears_session_even_when_request_fails():
    def _handler(request):
        if request.url.path == "/api/auth/signin":
            return httpx.Response(200, json=SESSION_BODY)
        return httpx.Response(404, json={"detail": "Refresh token not found"})

    client = _client(_handler)
    await client.SignIn("alice@example.com", "secret123")
    events = []
    client.OnAuthStateChange(lambda event, session: events.append(event))

    await client.SignOut()

    assert client.Session is None
    assert events == [SIGNED_OUT]
    await client.aclose()


def test_realtime_url_uses_websocket_scheme():
    client = BackendClient(base_url="https://shoplist.example.com/", http=httpx.AsyncClient())

    assert client.RealtimeUrl("online-users") == "wss://shoplist.example.com/api/realtime/ws/online-users?token="


@pytest.mark.asyncio
async def test_expired_token_is_refreshed_and_request_retried():
    refreshed = {**SESSION_BODY, "AccessToken": "fresh-token", "RefreshToken": "refresh-token-2"}
    seen = []

    def _handler(request):
        seen.append((request.url.path, request.headers.get("Authorization")))
        if request.url.path == "/api/auth/signin":
            return httpx.Response(200, json=SESSION_BODY)
        if request.url.path == "/api/auth/refresh":
            assert json.loads(request.content) == {"RefreshToken": "refresh-token"}
            return httpx.Response(200, json=refreshed)
        if request.headers["Authorization"] == "Bearer access-token":
            return httpx.Response(401, json={"detail": "Token expired"})
        return httpx.Response(200, json=[ITEM_BODY])

    client = _client(_handler)
    await client.SignIn("alice@example.com", "secret123")
    events = []
    client.OnAuthStateChange(lambda event, session: events.append(event))

    items = await client.ListShoppingItems()

    assert [item.Id for item in items] == [7]
    assert seen[1:] == [
        ("/api/shopping/items", "Bearer access-token"),
        ("/api/auth/refresh", None),
        ("/api/shopping/items", "Bearer fresh-token"),
    ]
    assert client.Session.AccessToken == "fresh-token"
    assert events == ["TOKEN_REFRESHED"]
    assert client.RealtimeUrl("online-users").endswith("token=fresh-token")
    await client.aclose()


@pytest.mark.asyncio
async def test_rejected_refresh_signs_out():
    def _handler(request):
        if request.url.path == "/api/auth/signin":
            return httpx.Response(200, json=SESSION_BODY)
        if request.url.path == "/api/auth/refresh":
            return httpx.Response(401, json={"detail": "Invalid refresh token"})
        return httpx.Response(401, json={"detail": "Token expired"})

    client = _client(_handler)
    await client.SignIn("alice@example.com", "secret123")
    events = []
    client.OnAuthStateChange(lambda event, session: events.append(event))

    with pytest.raises(AuthError) as exc_info:
        await client.ListShoppingItems()

    assert exc_info.value.Message == "Token expired"
    assert client.Session is None
    assert events == [SIGNED_OUT]
    await client.aclose()
