from datetime import datetime

from pydantic import BaseModel, Field


class ShoppingItemCreate(BaseModel):
    Item: str = Field(min_length=1, max_length=200)
    Quantity: str = Field(default="", max_length=60)


class ShoppingItemUpdate(BaseModel):
    Item: str | None = Field(default=None, min_length=1, max_length=200)
    Quantity: str | None = Field(default=None, max_length=60)
    Completed: bool | None = None


class ShoppingItemOut(BaseModel):
    Id: int
    CreatedAt: datetime
    Item: str
    Quantity: str
    UserId: int
    Completed: bool
    OwnerEmail: str | None = None
