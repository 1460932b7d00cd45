# broker/models/order.py
from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime, Enum as SqlEnum
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from broker.schemas.schemas import OrderStatus, OrderSide, OrderType
from broker.database.database import Base


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column("userId", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    instrument_id = Column("instrumentId", Integer, ForeignKey("instruments.id", ondelete="CASCADE"), nullable=False, index=True)
    size = Column(Integer, nullable=False)
    price = Column(Numeric(18, 2), nullable=False)
    type = Column(SqlEnum(OrderType, native_enum=False, length=10), nullable=False)
    side = Column(SqlEnum(OrderSide, native_enum=False, length=10), nullable=False)
    status = Column(SqlEnum(OrderStatus, native_enum=False, length=20), nullable=False)
    datetime = Column(DateTime(timezone=True), nullable=True, default=lambda: datetime.now(timezone.utc))
    # set on cancellation legs, points at the order they cancel
    origin_id = Column("originId", Integer, ForeignKey("orders.id"), nullable=True, index=True)

    instrument = relationship("InstrumentModel", lazy="joined")
