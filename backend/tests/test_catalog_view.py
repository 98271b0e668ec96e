import pytest

from app.client.models import SessionUser
from app.views.catalog import (
    CATALOG_TABLE,
    DELETE_CONFIRMATION,
    CatalogView,
    FilterProducts,
    FormatPrice,
    ParsePrice,
)

ALICE = SessionUser(Id=1, Email="alice@example.com")


async def _mounted_view(backend, prompter, sync_settings):
    view = CatalogView(backend, ALICE, settings=sync_settings, prompter=prompter)
    await view.Mount()
    return view


def test_filter_matches_name_or_description_case_insensitively(backend):
    tea = backend.SeedProduct("Green Tea", category="Drinks")
    biscuits = backend.SeedProduct("Biscuits", category="Snacks", description="Goes well with TEA")
    backend.SeedProduct("Soap", category="Household")
    products = list(backend.Products.values())

    assert [product.Id for product in FilterProducts(products, "tea")] == [tea.Id, biscuits.Id]
    assert [product.Id for product in FilterProducts(products, "tea", "Drinks")] == [tea.Id]
    assert FilterProducts(products, "", "Garden") == []
    assert len(FilterProducts(products)) == 3


def test_parse_price():
    assert ParsePrice("") is None
    assert ParsePrice(" 2.50 ") == 2.5
    for bad in ("abc", "nan", "-1"):
        with pytest.raises(ValueError):
            ParsePrice(bad)


def test_format_price():
    assert FormatPrice(None) == ""
    assert FormatPrice(3.0) == "3"
    assert FormatPrice(2.5) == "2.5"
    assert FormatPrice(1.99) == "1.99"


@pytest.mark.asyncio
async def test_mount_loads_products_sorted_by_name(backend, prompter, sync_settings):
    backend.SeedProduct("Milk", category="Dairy")
    backend.SeedProduct("Apples", category="Fruit")
    backend.SeedProduct("Cheese", category="Dairy")

    view = await _mounted_view(backend, prompter, sync_settings)

    assert [product.Name for product in view.Products] == ["Apples", "Cheese", "Milk"]
    assert view.Categories == ["Fruit", "Dairy"]
    assert backend.Channels[0].ChangeHandlers[0][:2] == (CATALOG_TABLE, "*")


@pytest.mark.asyncio
async def test_search_and_category_drive_filtered_products(backend, prompter, sync_settings):
    backend.SeedProduct("Green Tea", category="Drinks")
    backend.SeedProduct("Iced Tea", category="Cold")
    view = await _mounted_view(backend, prompter, sync_settings)

    view.SetSearch("TEA")
    assert [product.Name for product in view.FilteredProducts] == ["Green Tea", "Iced Tea"]
    view.SetCategory("Cold")
    assert [product.Name for product in view.FilteredProducts] == ["Iced Tea"]
    view.SetCategory("")
    view.SetSearch("")
    assert len(view.FilteredProducts) == 2


@pytest.mark.asyncio
async def test_any_change_event_refetches(backend, prompter, sync_settings):
    view = await _mounted_view(backend, prompter, sync_settings)
    backend.SeedProduct("Bread", user_id=2)

    await backend.Channels[0].EmitChange(CATALOG_TABLE, "INSERT", new={"Id": 1})

    assert [product.Name for product in view.Products] == ["Bread"]


@pytest.mark.asyncio
async def test_submit_creates_product_and_resets_form(backend, prompter, sync_settings):
    view = await _mounted_view(backend, prompter, sync_settings)
    view.StartCreate()
    view.Form.Name = "  Oat Milk "
    view.Form.Price = "1.75"
    view.Form.Category = "  "
    view.Form.Description = "Barista edition"

    record = await view.SubmitForm()

    assert record is not None
    assert record.Name == "Oat Milk"
    assert record.Price == 1.75
    assert record.Category is None
    assert record.Description == "Barista edition"
    assert [product.Id for product in view.Products] == [record.Id]
    assert view.ShowForm is False
    assert view.Form.Name == ""
    assert view.Saving is False


@pytest.mark.asyncio
async def test_submit_with_blank_name_does_nothing(backend, prompter, sync_settings):
    view = await _mounted_view(backend, prompter, sync_settings)
    view.StartCreate()
    view.Form.Name = "   "

    assert await view.SubmitForm() is None
    assert "InsertProduct" not in backend.Calls


@pytest.mark.asyncio
async def test_submit_with_unparseable_price_alerts(backend, prompter, sync_settings):
    view = await _mounted_view(backend, prompter, sync_settings)
    view.StartCreate()
    view.Form.Name = "Butter"
    view.Form.Price = "two euros"

    assert await view.SubmitForm() is None
    assert prompter.Alerts == ["Invalid price: two euros"]
    assert "InsertProduct" not in backend.Calls
    assert view.ShowForm is True


@pytest.mark.asyncio
async def test_submit_failure_alerts_with_message(backend, prompter, sync_settings):
    view = await _mounted_view(backend, prompter, sync_settings)
    view.StartCreate()
    view.Form.Name = "Butter"
    backend.Fail("InsertProduct", "Catalog storage not initialized")

    assert await view.SubmitForm() is None
    assert prompter.Alerts == ["Catalog storage not initialized"]
    assert view.Form.Name == "Butter"


@pytest.mark.asyncio
async def test_edit_only_allowed_for_owner(backend, prompter, sync_settings):
    mine = backend.SeedProduct("Jam", price=3.0, category="Spreads")
    theirs = backend.SeedProduct("Honey", user_id=2)
    view = await _mounted_view(backend, prompter, sync_settings)

    assert view.StartEdit(view.Find(theirs.Id)) is False
    assert view.ShowForm is False

    assert view.StartEdit(view.Find(mine.Id)) is True
    assert view.Form.Price == "3"
    assert view.Form.Category == "Spreads"
    view.Form.Price = "3.25"
    record = await view.SubmitForm()

    assert record.Id == mine.Id
    assert record.Price == 3.25
    assert "UpdateProduct" in backend.Calls


@pytest.mark.asyncio
async def test_delete_requires_confirmation(backend, declining_prompter, sync_settings):
    product = backend.SeedProduct("Jam")
    view = await _mounted_view(backend, declining_prompter, sync_settings)

    assert await view.DeleteProduct(product.Id) is False
    assert declining_prompter.Confirms == [DELETE_CONFIRMATION]
    assert "DeleteProduct" not in backend.Calls
    assert len(view.Products) == 1


@pytest.mark.asyncio
async def test_delete_confirmed_removes_product(backend, prompter, sync_settings):
    product = backend.SeedProduct("Jam")
    view = await _mounted_view(backend, prompter, sync_settings)

    assert await view.DeleteProduct(product.Id) is True
    assert view.Products == []


@pytest.mark.asyncio
async def test_delete_failure_alerts(backend, prompter, sync_settings):
    product = backend.SeedProduct("Jam")
    view = await _mounted_view(backend, prompter, sync_settings)
    backend.Fail("DeleteProduct", "Only the owner can modify this product", 403)

    assert await view.DeleteProduct(product.Id) is False
    assert prompter.Alerts == ["Only the owner can modify this product"]
    assert len(view.Products) == 1
    assert view.DeletingIds == set()


@pytest.mark.asyncio
async def test_cannot_delete_someone_elses_product(backend, prompter, sync_settings):
    product = backend.SeedProduct("Honey", user_id=2)
    view = await _mounted_view(backend, prompter, sync_settings)

    assert view.CanModify(view.Find(product.Id)) is False
    assert await view.DeleteProduct(product.Id) is False
    assert prompter.Confirms == []
