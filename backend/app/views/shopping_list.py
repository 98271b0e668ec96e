import logging

from app.client.api import BackendError
from app.client.models import SessionUser, ShoppingItem
from app.views.base import NowUtc, SyncedView

logger = logging.getLogger("views.shopping_list")

SHOPPING_TABLE = "shopping_lists"


def _Sorted(items: list[ShoppingItem]) -> list[ShoppingItem]:
    return sorted(items, key=lambda entry: entry.SortKey())


class ShoppingListView(SyncedView):
    """Live mirror of the shared shopping list.

    ``Items`` stays sorted by creation time. Local mutations are applied
    before the remote call returns; change events and polls reconcile by id.

    A pending add is shown as a placeholder with a negative id. The first
    stored record of ours with the same label and quantity replaces it,
    whether it arrives by change event, poll or the insert response.
    Every applied change bumps ``_Generation``; a fetch that started before
    the latest change is discarded and re-run.
    """

    ChannelName = "shopping_list_changes"

    def __init__(self, client, user: SessionUser | None, settings=None, prompter=None):
        super().__init__(client, settings=settings, prompter=prompter)
        self.User = user
        self.Items: list[ShoppingItem] = []
        self.AddingItem = False
        self.UpdatingIds: set[int] = set()
        self.DeletingIds: set[int] = set()
        self._Placeholders: dict[int, ShoppingItem] = {}
        self._NextTempId = -1
        self._Generation = 0

    def Find(self, item_id: int) -> ShoppingItem | None:
        for entry in self.Items:
            if entry.Id == item_id:
                return entry
        return None

    def IsProcessing(self, item_id: int) -> bool:
        return item_id in self.UpdatingIds or item_id in self.DeletingIds

    def CanDelete(self, item: ShoppingItem) -> bool:
        return self.User is not None and item.UserId == self.User.Id and not self.IsProcessing(item.Id)

    def _Upsert(self, record: ShoppingItem) -> None:
        current = self.Find(record.Id)
        if current is not None and record.OwnerEmail is None and current.OwnerEmail:
            record = record.model_copy(update={"OwnerEmail": current.OwnerEmail})
        remaining = [entry for entry in self.Items if entry.Id != record.Id]
        remaining.append(record)
        self.Items = _Sorted(remaining)

    def _Remove(self, item_id: int) -> None:
        self.Items = [entry for entry in self.Items if entry.Id != item_id]

    def _Changed(self) -> None:
        self._Generation += 1
        self.Touch()

    def _ClaimPlaceholder(self, record: ShoppingItem) -> None:
        """Drop the pending placeholder that ``record`` is the stored copy of."""
        if self.User is None or record.UserId != self.User.Id:
            return
        for placeholder_id, placeholder in self._Placeholders.items():
            if placeholder.Item == record.Item and placeholder.Quantity == record.Quantity:
                del self._Placeholders[placeholder_id]
                self._Remove(placeholder_id)
                return

    def _Reconcile(self, fetched: list[ShoppingItem]) -> list[ShoppingItem]:
        known = {entry.Id for entry in self.Items}
        merged: list[ShoppingItem] = []
        for record in fetched:
            if record.Id in self.DeletingIds:
                continue
            if record.Id in self.UpdatingIds:
                local = self.Find(record.Id)
                if local is not None:
                    record = record.model_copy(update={"Completed": local.Completed})
            elif record.Id not in known:
                self._ClaimPlaceholder(record)
            merged.append(record)
        merged.extend(self._Placeholders.values())
        return _Sorted(merged)

    async def Load(self) -> None:
        generation = self._Generation
        try:
            fetched = await self.Client.ListShoppingItems(order_by="CreatedAt", ascending=True)
        except BackendError as exc:
            logger.warning("failed to load shopping items: %s", exc.Message)
            return
        finally:
            self.Loading = False
        if generation != self._Generation:
            logger.debug("discarding stale shopping list snapshot")
            self.ScheduleRefetch()
            return
        self.Items = self._Reconcile(fetched)
        self.Touch()

    def BuildChannel(self):
        channel = self.Client.Channel(self.ChannelName)
        channel.OnChange(SHOPPING_TABLE, "INSERT", self.HandleInsert)
        channel.OnChange(SHOPPING_TABLE, "UPDATE", self.HandleUpdate)
        channel.OnChange(SHOPPING_TABLE, "DELETE", self.HandleDelete)
        return channel

    async def HandleInsert(self, message: dict) -> None:
        item_id = (message.get("New") or {}).get("Id")
        if item_id is None:
            return
        try:
            record = await self.Client.GetShoppingItem(item_id)
        except BackendError as exc:
            logger.warning("failed to fetch inserted item id=%s: %s", item_id, exc.Message)
            return
        if record.Id in self.DeletingIds:
            return
        if self.Find(record.Id) is None:
            self._ClaimPlaceholder(record)
        self._Upsert(record)
        self._Changed()

    def HandleUpdate(self, message: dict) -> None:
        new = message.get("New") or {}
        item_id = new.get("Id")
        current = self.Find(item_id) if item_id is not None else None
        if current is None:
            return
        fields = {key: value for key, value in new.items() if key in ShoppingItem.model_fields}
        if fields.get("OwnerEmail") is None:
            fields.pop("OwnerEmail", None)
        self._Upsert(ShoppingItem.model_validate({**current.model_dump(), **fields}))
        self.UpdatingIds.discard(item_id)
        self._Changed()

    def HandleDelete(self, message: dict) -> None:
        item_id = (message.get("Old") or {}).get("Id")
        if item_id is None:
            return
        self._Remove(item_id)
        self.DeletingIds.discard(item_id)
        self._Changed()

    async def AddItem(self, text: str, quantity: str = "") -> ShoppingItem | None:
        label = (text or "").strip()
        if not label or self.User is None:
            return None
        quantity = (quantity or "").strip()
        placeholder = ShoppingItem(
            Id=self._NextTempId,
            CreatedAt=NowUtc(),
            Item=label,
            Quantity=quantity,
            UserId=self.User.Id,
            Completed=False,
            OwnerEmail=self.User.Email,
        )
        self._NextTempId -= 1
        self._Placeholders[placeholder.Id] = placeholder
        self._Upsert(placeholder)
        self.AddingItem = True
        try:
            record = await self.Client.InsertShoppingItem(label, quantity)
        except BackendError as exc:
            logger.exception("error adding item %r", label)
            self._Remove(placeholder.Id)
            self.Prompter.Alert(f"Error adding item: {exc.Message}")
            return None
        finally:
            self.AddingItem = False
            self._Placeholders.pop(placeholder.Id, None)
        self._Remove(placeholder.Id)
        self._Upsert(record)
        self._Changed()
        return record

    async def ToggleItem(self, item_id: int) -> ShoppingItem | None:
        current = self.Find(item_id)
        if current is None or item_id < 0 or self.IsProcessing(item_id):
            return None
        completed = not current.Completed
        self._Upsert(current.model_copy(update={"Completed": completed}))
        self.UpdatingIds.add(item_id)
        try:
            record = await self.Client.UpdateShoppingItem(item_id, Completed=completed)
        except BackendError as exc:
            logger.error("error updating item id=%s: %s", item_id, exc.Message)
            self.UpdatingIds.discard(item_id)
            self.ScheduleRefetch()
            return None
        self.UpdatingIds.discard(item_id)
        self._Upsert(record)
        self._Changed()
        return record

    async def DeleteItem(self, item_id: int) -> bool:
        current = self.Find(item_id)
        if current is None or item_id < 0 or not self.CanDelete(current):
            return False
        self.DeletingIds.add(item_id)
        self._Remove(item_id)
        try:
            await self.Client.DeleteShoppingItem(item_id)
        except BackendError as exc:
            logger.error("error deleting item id=%s: %s", item_id, exc.Message)
            self.DeletingIds.discard(item_id)
            self.ScheduleRefetch()
            return False
        self.DeletingIds.discard(item_id)
        self._Changed()
        return True
