import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from app.db import GetDb
from app.modules.auth.deps import RequireAuthenticated, UserContext
from app.modules.auth.models import User
from app.modules.realtime.hub import hub
from app.modules.shopping.schemas import ShoppingItemCreate, ShoppingItemOut, ShoppingItemUpdate
from app.modules.shopping.services import AddItem, DeleteItem, GetItem, ListItems, UpdateItem

router = APIRouter()
logger = logging.getLogger("shopping.items")

SHOPPING_TABLE = "shopping_lists"


def _handle_db_error(exc: Exception) -> None:
    logger.exception("shopping items database error")
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Shopping storage not initialized. Run alembic upgrade head.",
    ) from exc


def _LoadUserEmails(db: Session, user_ids: set[int]) -> dict[int, str]:
    if not user_ids:
        return {}
    users = db.query(User).filter(User.Id.in_(user_ids)).all()
    return {user.Id: user.Email for user in users}


def _BuildShoppingOut(entry, owner_email: str | None) -> ShoppingItemOut:
    return ShoppingItemOut(
        Id=entry.Id,
        CreatedAt=entry.CreatedAt,
        Item=entry.Item,
        Quantity=entry.Quantity or "",
        UserId=entry.UserId,
        Completed=bool(entry.Completed),
        OwnerEmail=owner_email,
    )


def _Publish(event: str, new: ShoppingItemOut | None = None, old: ShoppingItemOut | None = None) -> None:
    hub.PublishChange(
        SHOPPING_TABLE,
        event,
        new=new.model_dump(mode="json") if new else None,
        old=old.model_dump(mode="json") if old else None,
    )


@router.get("", response_model=list[ShoppingItemOut])
def ListShoppingItems(
    order_by: str = "CreatedAt",
    ascending: bool = True,
    user_id: int | None = None,
    completed: bool | None = None,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> list[ShoppingItemOut]:
    try:
        entries = ListItems(
            db,
            order_by=order_by,
            ascending=ascending,
            user_id=user_id,
            completed=completed,
        )
        email_map = _LoadUserEmails(db, {entry.UserId for entry in entries})
        return [_BuildShoppingOut(entry, email_map.get(entry.UserId)) for entry in entries]
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/{item_id}", response_model=ShoppingItemOut)
def GetShoppingItem(
    item_id: int,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> ShoppingItemOut:
    try:
        entry = GetItem(db, item_id)
        if not entry:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shopping item not found")
        email_map = _LoadUserEmails(db, {entry.UserId})
        return _BuildShoppingOut(entry, email_map.get(entry.UserId))
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("", response_model=ShoppingItemOut, status_code=status.HTTP_201_CREATED)
def CreateShoppingItem(
    payload: ShoppingItemCreate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> ShoppingItemOut:
    try:
        entry = AddItem(
            db,
            user_id=user.Id,
            item_label=payload.Item,
            quantity=payload.Quantity,
        )
        result = _BuildShoppingOut(entry, user.Email)
        _Publish("INSERT", new=result)
        return result
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.patch("/{item_id}", response_model=ShoppingItemOut)
def UpdateShoppingItem(
    item_id: int,
    payload: ShoppingItemUpdate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> ShoppingItemOut:
    try:
        existing = GetItem(db, item_id)
        if not existing:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shopping item not found")
        owner_email = _LoadUserEmails(db, {existing.UserId}).get(existing.UserId)
        previous = _BuildShoppingOut(existing, owner_email)
        entry = UpdateItem(
            db,
            item_id=item_id,
            item_label=payload.Item,
            quantity=payload.Quantity,
            completed=payload.Completed,
        )
        if not entry:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shopping item not found")
        result = _BuildShoppingOut(entry, owner_email)
        _Publish("UPDATE", new=result, old=previous)
        return result
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def DeleteShoppingItem(
    item_id: int,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireAuthenticated),
) -> None:
    try:
        entry = GetItem(db, item_id)
        if not entry:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shopping item not found")
        if entry.UserId != user.Id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the owner can delete this item")
        previous = _BuildShoppingOut(entry, _LoadUserEmails(db, {entry.UserId}).get(entry.UserId))
        if not DeleteItem(db, item_id=item_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shopping item not found")
        _Publish("DELETE", old=previous)
    except ProgrammingError as exc:
        _handle_db_error(exc)
