from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from ..db import Base


class ResponseRow(Base):
    __tablename__ = "responses"

    id = Column(Integer, primary_key=True, index=True)
    emergency_id = Column(
        Integer,
        ForeignKey("emergencies.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    incident_number = Column(Text, nullable=False, default="")
    details = Column(Text, nullable=False, default="")

    # When the incident happened, not when it was entered
    date = Column(DateTime, index=True, nullable=False)

    emergency = relationship("EmergencyRow", back_populates="responses")
