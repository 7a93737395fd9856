from sqlalchemy import Column, Text
from ..db import Base


class Setting(Base):
    __tablename__ = "settings"

    key = Column(Text, primary_key=True)
    value = Column(Text, nullable=True)
