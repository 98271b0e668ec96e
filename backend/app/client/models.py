from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator, BaseModel


def _AsUtc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_AsUtc)]


class SessionUser(BaseModel):
    Id: int
    Email: str


class Session(BaseModel):
    AccessToken: str
    RefreshToken: str
    TokenType: str = "bearer"
    ExpiresIn: int
    User: SessionUser


class ShoppingItem(BaseModel):
    Id: int
    CreatedAt: UtcDatetime
    Item: str
    Quantity: str = ""
    UserId: int
    Completed: bool = False
    OwnerEmail: str | None = None

    def SortKey(self) -> tuple[datetime, int]:
        return (self.CreatedAt, self.Id)


class Product(BaseModel):
    Id: int
    CreatedAt: UtcDatetime
    Name: str
    Price: float | None = None
    Category: str | None = None
    Description: str | None = None
    UserId: int


class Profile(BaseModel):
    Id: int
    Email: str
    CreatedAt: UtcDatetime


class OnlineUser(BaseModel):
    Id: int
    Email: str
    OnlineAt: UtcDatetime
    IsCurrentUser: bool = False
