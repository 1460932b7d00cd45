# broker/models/market_data.py
from sqlalchemy import Column, Integer, Numeric, Date, ForeignKey, func
from sqlalchemy.orm import relationship

from broker.database.database import Base


class MarketDataModel(Base):
    __tablename__ = "marketData"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    instrument_id = Column("instrumentId", Integer, ForeignKey("instruments.id", ondelete="CASCADE"), nullable=False, index=True)
    high = Column(Numeric(10, 2), nullable=True)
    low = Column(Numeric(10, 2), nullable=True)
    open = Column(Numeric(10, 2), nullable=True)
    close = Column(Numeric(10, 2), nullable=True)
    previous_close = Column("previousClose", Numeric(10, 2), nullable=True)
    date = Column(Date, nullable=False, server_default=func.current_date())

    instrument = relationship("InstrumentModel", lazy="joined")
