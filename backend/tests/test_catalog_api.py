from app.modules.realtime import hub as hub_module


def _product(name, **fields):
    return {"Name": name, "Price": None, "Category": None, "Description": None, **fields}


def test_catalog_crud_flow(api_client, sign_in, monkeypatch):
    events = []
    monkeypatch.setattr(
        hub_module.hub,
        "PublishChange",
        lambda table, event, new=None, old=None: events.append((table, event)),
    )
    headers, session = sign_in("alice@example.com")

    created = api_client.post(
        "/api/catalog/products",
        json=_product(" Oat  Milk ", Price=1.75, Category=" Dairy ", Description="   "),
        headers=headers,
    )
    assert created.status_code == 201
    body = created.json()
    assert body["Name"] == "Oat Milk"
    assert body["Price"] == 1.75
    assert body["Category"] == "Dairy"
    assert body["Description"] is None
    assert body["UserId"] == session["User"]["Id"]

    updated = api_client.put(
        f"/api/catalog/products/{body['Id']}",
        json=_product("Oat Milk", Price=1.95, Category="Dairy"),
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["Price"] == 1.95

    deleted = api_client.delete(f"/api/catalog/products/{body['Id']}", headers=headers)
    assert deleted.status_code == 204

    assert [event for table, event in events if table == "product_catalog"] == ["INSERT", "UPDATE", "DELETE"]


def test_catalog_lists_by_name_and_filters_category(api_client, sign_in):
    headers, _session = sign_in("alice@example.com")
    for name, category in (("Tea", "Drinks"), ("Apples", "Fruit"), ("Coffee", "Drinks")):
        api_client.post("/api/catalog/products", json=_product(name, Category=category), headers=headers)

    listed = api_client.get("/api/catalog/products", headers=headers)
    assert [entry["Name"] for entry in listed.json()] == ["Apples", "Coffee", "Tea"]

    drinks = api_client.get("/api/catalog/products", params={"category": "Drinks"}, headers=headers)
    assert [entry["Name"] for entry in drinks.json()] == ["Coffee", "Tea"]


def test_catalog_writes_are_owner_only(api_client, sign_in):
    alice, _alice_session = sign_in("alice@example.com")
    bob, _bob_session = sign_in("bob@example.com")
    product = api_client.post("/api/catalog/products", json=_product("Jam"), headers=alice).json()

    assert api_client.put(f"/api/catalog/products/{product['Id']}", json=_product("Honey"), headers=bob).status_code == 403
    assert api_client.delete(f"/api/catalog/products/{product['Id']}", headers=bob).status_code == 403
    assert api_client.delete("/api/catalog/products/9999", headers=alice).status_code == 404


def test_catalog_rejects_negative_price(api_client, sign_in):
    headers, _session = sign_in("alice@example.com")

    response = api_client.post("/api/catalog/products", json=_product("Jam", Price=-1), headers=headers)

    assert response.status_code == 422
