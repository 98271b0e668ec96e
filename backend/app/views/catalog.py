import logging
import math
from dataclasses import dataclass

from app.client.api import BackendError
from app.client.models import Product, SessionUser
from app.views.base import SyncedView

logger = logging.getLogger("views.catalog")

CATALOG_TABLE = "product_catalog"
DELETE_CONFIRMATION = "Are you sure you want to delete this product?"


@dataclass
class ProductForm:
    Name: str = ""
    Price: str = ""
    Category: str = ""
    Description: str = ""


def ParsePrice(text: str) -> float | None:
    raw = (text or "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid price: {raw}") from exc
    if not math.isfinite(value):
        raise ValueError(f"Invalid price: {raw}")
    if value < 0:
        raise ValueError("Price cannot be negative")
    return value


def FormatPrice(price: float | None) -> str:
    if price is None:
        return ""
    text = f"{price:.2f}"
    return text.rstrip("0").rstrip(".")


def _Blank(value: str) -> str | None:
    cleaned = (value or "").strip()
    return cleaned or None


def FilterProducts(products: list[Product], search: str = "", category: str = "") -> list[Product]:
    term = (search or "").strip().lower()
    results = []
    for product in products:
        if category and product.Category != category:
            continue
        if term:
            name = product.Name.lower()
            description = (product.Description or "").lower()
            if term not in name and term not in description:
                continue
        results.append(product)
    return results


def DistinctCategories(products: list[Product]) -> list[str]:
    seen: list[str] = []
    for product in products:
        if product.Category and product.Category not in seen:
            seen.append(product.Category)
    return seen


class CatalogView(SyncedView):
    ChannelName = "product_catalog_changes"

    def __init__(self, client, user: SessionUser | None, settings=None, prompter=None):
        super().__init__(client, settings=settings, prompter=prompter)
        self.User = user
        self.Products: list[Product] = []
        self.Form = ProductForm()
        self.ShowForm = False
        self.EditingProduct: Product | None = None
        self.Saving = False
        self.DeletingIds: set[int] = set()
        self.SearchTerm = ""
        self.SelectedCategory = ""

    @property
    def FilteredProducts(self) -> list[Product]:
        return FilterProducts(self.Products, self.SearchTerm, self.SelectedCategory)

    @property
    def Categories(self) -> list[str]:
        return DistinctCategories(self.Products)

    def Find(self, product_id: int) -> Product | None:
        for product in self.Products:
            if product.Id == product_id:
                return product
        return None

    def CanModify(self, product: Product) -> bool:
        return self.User is not None and product.UserId == self.User.Id

    def SetSearch(self, term: str) -> None:
        self.SearchTerm = term or ""

    def SetCategory(self, category: str) -> None:
        self.SelectedCategory = category or ""

    async def Load(self) -> None:
        try:
            products = await self.Client.ListProducts(order_by="Name", ascending=True)
        except BackendError as exc:
            logger.warning("failed to load products: %s", exc.Message)
            return
        finally:
            self.Loading = False
        self.Products = products
        self.Touch()

    def BuildChannel(self):
        channel = self.Client.Channel(self.ChannelName)
        channel.OnChange(CATALOG_TABLE, "*", self.HandleChange)
        return channel

    async def HandleChange(self, message: dict) -> None:
        logger.debug("catalog change event=%s", message.get("Event"))
        await self.Load()

    def StartCreate(self) -> None:
        self.EditingProduct = None
        self.Form = ProductForm()
        self.ShowForm = True

    def StartEdit(self, product: Product) -> bool:
        if not self.CanModify(product):
            return False
        self.EditingProduct = product
        self.Form = ProductForm(
            Name=product.Name,
            Price=FormatPrice(product.Price),
            Category=product.Category or "",
            Description=product.Description or "",
        )
        self.ShowForm = True
        return True

    def CancelEdit(self) -> None:
        self.EditingProduct = None
        self.Form = ProductForm()
        self.ShowForm = False

    async def SubmitForm(self) -> Product | None:
        name = self.Form.Name.strip()
        if not name:
            return None
        try:
            price = ParsePrice(self.Form.Price)
        except ValueError as exc:
            self.Prompter.Alert(str(exc))
            return None
        fields = {
            "Name": name,
            "Price": price,
            "Category": _Blank(self.Form.Category),
            "Description": _Blank(self.Form.Description),
        }
        editing = self.EditingProduct
        self.Saving = True
        try:
            if editing is not None:
                record = await self.Client.UpdateProduct(editing.Id, fields)
            else:
                record = await self.Client.InsertProduct(fields)
        except BackendError as exc:
            logger.exception("error saving product %r", name)
            self.Prompter.Alert(exc.Message or "Error saving the product")
            return None
        finally:
            self.Saving = False
        remaining = [product for product in self.Products if product.Id != record.Id]
        remaining.append(record)
        self.Products = sorted(remaining, key=lambda product: product.Name)
        self.CancelEdit()
        self.Touch()
        return record

    async def DeleteProduct(self, product_id: int) -> bool:
        product = self.Find(product_id)
        if product is None or not self.CanModify(product) or product_id in self.DeletingIds:
            return False
        if not self.Prompter.Confirm(DELETE_CONFIRMATION):
            return False
        self.DeletingIds.add(product_id)
        try:
            await self.Client.DeleteProduct(product_id)
        except BackendError as exc:
            logger.exception("error deleting product id=%s", product_id)
            self.Prompter.Alert(exc.Message or "Error deleting the product")
            return False
        finally:
            self.DeletingIds.discard(product_id)
        self.Products = [entry for entry in self.Products if entry.Id != product_id]
        self.Touch()
        return True
