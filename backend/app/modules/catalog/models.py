from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text

from app.db import Base


class Product(Base):
    __tablename__ = "product_catalog"

    Id = Column(Integer, primary_key=True, index=True)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    Name = Column(String(200), nullable=False, index=True)
    Price = Column(Numeric(10, 2))
    Category = Column(String(80), index=True)
    Description = Column(Text)
    UserId = Column(Integer, ForeignKey("profiles.Id"), nullable=False, index=True)
