"""
Client database model.
"""

import uuid

from sqlalchemy import Column, String, DateTime, Uuid
from sqlalchemy.sql import func
from barbershop.app.db.session import Base


class Client(Base):
    """Client of the barbershop. Managed by the back-office CRUD screens."""
    __tablename__ = "clients"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(150), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(30), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Client(id={self.id}, name='{self.name}')>"
