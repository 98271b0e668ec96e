from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String

from app.db import Base


class ShoppingItem(Base):
    __tablename__ = "shopping_lists"
    __table_args__ = (
        Index("ix_shopping_lists_created_at", "CreatedAt", "Id"),
    )

    Id = Column(Integer, primary_key=True, index=True)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    Item = Column(String(200), nullable=False)
    Quantity = Column(String(60), nullable=False, default="")
    UserId = Column(Integer, ForeignKey("profiles.Id"), nullable=False, index=True)
    Completed = Column(Boolean, nullable=False, default=False)
