from sqlalchemy import Column, Integer, Text
from sqlalchemy.orm import relationship
from ..db import Base


class EmergencyRow(Base):
    __tablename__ = "emergencies"

    id = Column(Integer, primary_key=True, index=True)

    # Category name, e.g. "Fire", "Medical". Case-sensitive and unique.
    type = Column(Text, unique=True, nullable=False)

    # Insertion order of responses is id order
    responses = relationship(
        "ResponseRow",
        back_populates="emergency",
        order_by="ResponseRow.id",
        cascade="all, delete-orphan",
    )
