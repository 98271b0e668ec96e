from sqlalchemy.orm import Session

from app.modules.shopping.models import ShoppingItem

MAX_ITEM_LENGTH = 200
MAX_QUANTITY_LENGTH = 60
ORDERABLE_COLUMNS = {
    "CreatedAt": ShoppingItem.CreatedAt,
    "Item": ShoppingItem.Item,
}


def NormalizeItemLabel(value: str) -> str:
    if value is None:
        return ""
    normalized = " ".join(value.strip().split())
    return normalized


def ValidateItemLabel(value: str) -> str:
    normalized = NormalizeItemLabel(value)
    if not normalized:
        raise ValueError("Item is required")
    if len(normalized) > MAX_ITEM_LENGTH:
        raise ValueError("Item is too long")
    return normalized


def ValidateQuantity(value: str | None) -> str:
    normalized = (value or "").strip()
    if len(normalized) > MAX_QUANTITY_LENGTH:
        raise ValueError("Quantity is too long")
    return normalized


def AddItem(
    db: Session,
    user_id: int,
    item_label: str,
    quantity: str | None = "",
) -> ShoppingItem:
    record = ShoppingItem(
        Item=ValidateItemLabel(item_label),
        Quantity=ValidateQuantity(quantity),
        UserId=user_id,
        Completed=False,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def GetItem(db: Session, item_id: int) -> ShoppingItem | None:
    return db.query(ShoppingItem).filter(ShoppingItem.Id == item_id).first()


def UpdateItem(
    db: Session,
    item_id: int,
    item_label: str | None = None,
    quantity: str | None = None,
    completed: bool | None = None,
) -> ShoppingItem | None:
    entry = GetItem(db, item_id)
    if not entry:
        return None
    if item_label is not None:
        entry.Item = ValidateItemLabel(item_label)
    if quantity is not None:
        entry.Quantity = ValidateQuantity(quantity)
    if completed is not None:
        entry.Completed = completed
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def DeleteItem(db: Session, item_id: int) -> bool:
    entry = GetItem(db, item_id)
    if not entry:
        return False
    db.delete(entry)
    db.commit()
    return True


def ListItems(
    db: Session,
    order_by: str = "CreatedAt",
    ascending: bool = True,
    user_id: int | None = None,
    completed: bool | None = None,
) -> list[ShoppingItem]:
    column = ORDERABLE_COLUMNS.get(order_by)
    if column is None:
        raise ValueError(f"Cannot order by {order_by}")
    query = db.query(ShoppingItem)
    if user_id is not None:
        query = query.filter(ShoppingItem.UserId == user_id)
    if completed is not None:
        query = query.filter(ShoppingItem.Completed == completed)
    if ascending:
        query = query.order_by(column.asc(), ShoppingItem.Id.asc())
    else:
        query = query.order_by(column.desc(), ShoppingItem.Id.desc())
    return query.all()
