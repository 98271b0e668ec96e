from sqlalchemy.orm import Session

from app.modules.catalog.models import Product
from app.modules.catalog.schemas import ProductBase

MAX_NAME_LENGTH = 200
ORDERABLE_COLUMNS = {
    "Name": Product.Name,
    "CreatedAt": Product.CreatedAt,
}


def _OptionalText(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


def ValidateProductName(value: str) -> str:
    normalized = " ".join((value or "").strip().split())
    if not normalized:
        raise ValueError("Name is required")
    if len(normalized) > MAX_NAME_LENGTH:
        raise ValueError("Name is too long")
    return normalized


def _ApplyFields(record: Product, payload: ProductBase) -> None:
    if payload.Price is not None and payload.Price < 0:
        raise ValueError("Price cannot be negative")
    record.Name = ValidateProductName(payload.Name)
    record.Price = payload.Price
    record.Category = _OptionalText(payload.Category)
    record.Description = _OptionalText(payload.Description)


def CreateProduct(db: Session, user_id: int, payload: ProductBase) -> Product:
    record = Product(UserId=user_id)
    _ApplyFields(record, payload)
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def GetProduct(db: Session, product_id: int) -> Product | None:
    return db.query(Product).filter(Product.Id == product_id).first()


def UpdateProduct(db: Session, product_id: int, payload: ProductBase) -> Product | None:
    record = GetProduct(db, product_id)
    if not record:
        return None
    _ApplyFields(record, payload)
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def DeleteProduct(db: Session, product_id: int) -> bool:
    record = GetProduct(db, product_id)
    if not record:
        return False
    db.delete(record)
    db.commit()
    return True


def ListProducts(
    db: Session,
    order_by: str = "Name",
    ascending: bool = True,
    category: str | None = None,
) -> list[Product]:
    column = ORDERABLE_COLUMNS.get(order_by)
    if column is None:
        raise ValueError(f"Cannot order by {order_by}")
    query = db.query(Product)
    if category:
        query = query.filter(Product.Category == category)
    if ascending:
        query = query.order_by(column.asc(), Product.Id.asc())
    else:
        query = query.order_by(column.desc(), Product.Id.desc())
    return query.all()
