import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from app.db import GetDb
from app.modules.auth.deps import RequireAuthenticated, UserContext
from app.modules.catalog.schemas import ProductCreate, ProductOut, ProductUpdate
from app.modules.catalog.services import (
    CreateProduct,
    DeleteProduct,
    GetProduct,
    ListProducts,
    UpdateProduct,
)
from app.modules.realtime.hub import hub

router = APIRouter(prefix="/api/catalog", tags=["catalog"])
logger = logging.getLogger("catalog.products")

CATALOG_TABLE = "product_catalog"


def _handle_db_error(exc: Exception) -> None:
    logger.exception("product catalog database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Catalog storage not initialized. Run alembic upgrade head.",
    ) from exc


def _BuildProductOut(record) -> ProductOut:
    return ProductOut(
        Id=record.Id,
        CreatedAt=record.CreatedAt,
        Name=record.Name,
        Price=float(record.Price) if record.Price is not None else None,
        Category=record.Category,
        Description=record.Description,
        UserId=record.UserId,
    )


def _RequireOwnedProduct(db: Session, product_id: int, user: UserContext):
    record = GetProduct(db, product_id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    if record.UserId != user.Id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the owner can modify this product")
    return record


@router.get("/status")
async def catalog_status() -> dict:
    logger.debug("catalog status ok")
    return {"status": "ok", "module": "catalog", "table": CATALOG_TABLE}


@router.get("/products", response_model=list[ProductOut])
def ListCatalogProducts(
    order_by: str = "Name",
    ascending: bool = True,
    category: str | None = None,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> list[ProductOut]:
    try:
        records = ListProducts(db, order_by=order_by, ascending=ascending, category=category)
        return [_BuildProductOut(record) for record in records]
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/products/{product_id}", response_model=ProductOut)
def GetCatalogProduct(
    product_id: int,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> ProductOut:
    try:
        record = GetProduct(db, product_id)
        if not record:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
        return _BuildProductOut(record)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/products", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def CreateCatalogProduct(
    payload: ProductCreate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> ProductOut:
    try:
        result = _BuildProductOut(CreateProduct(db, user_id=user.Id, payload=payload))
        hub.PublishChange(CATALOG_TABLE, "INSERT", new=result.model_dump(mode="json"))
        return result
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.put("/products/{product_id}", response_model=ProductOut)
def UpdateCatalogProduct(
    product_id: int,
    payload: ProductUpdate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> ProductOut:
    try:
        previous = _BuildProductOut(_RequireOwnedProduct(db, product_id, user))
        record = UpdateProduct(db, product_id=product_id, payload=payload)
        if not record:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
        result = _BuildProductOut(record)
        hub.PublishChange(
            CATALOG_TABLE,
            "UPDATE",
            new=result.model_dump(mode="json"),
            old=previous.model_dump(mode="json"),
        )
        return result
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def DeleteCatalogProduct(
    product_id: int,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> None:
    try:
        previous = _BuildProductOut(_RequireOwnedProduct(db, product_id, user))
        if not DeleteProduct(db, product_id=product_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
        hub.PublishChange(CATALOG_TABLE, "DELETE", old=previous.model_dump(mode="json"))
    except ProgrammingError as exc:
        _handle_db_error(exc)
