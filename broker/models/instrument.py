# broker/models/instrument.py
from sqlalchemy import Column, Integer, String, Enum as SqlEnum

from broker.schemas.schemas import InstrumentType
from broker.database.database import Base


class InstrumentModel(Base):
    __tablename__ = "instruments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    ticker = Column(String(10), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    type = Column(SqlEnum(InstrumentType, native_enum=False, length=10), nullable=False)
