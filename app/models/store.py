"""
Store account model.

A Store is a luggage-storage shop registered on the marketplace. Only the
columns the sign-up flow reads are mapped here.
"""

from sqlalchemy import Column, String, DateTime, func
from app.core.database import Base


class Store(Base):
    __tablename__ = "stores"

    id = Column(String(50), primary_key=True)  # e.g. "store_k3j9x2"
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Store(id={self.id}, email='{self.email}')>"
