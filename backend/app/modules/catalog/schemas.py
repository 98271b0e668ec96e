from datetime import datetime

from pydantic import BaseModel, Field


class ProductBase(BaseModel):
    Name: str = Field(min_length=1, max_length=200)
    Price: float | None = Field(default=None, ge=0)
    Category: str | None = Field(default=None, max_length=80)
    Description: str | None = Field(default=None, max_length=2000)


class ProductCreate(ProductBase):
    pass


class ProductUpdate(ProductBase):
    pass


class ProductOut(ProductBase):
    Id: int
    CreatedAt: datetime
    UserId: int
