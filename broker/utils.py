# broker/utils.py
import math
from typing import List, Optional

from sqlalchemy import and_, desc, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from broker.exceptions import NotFound, OrderCreationFailed
from broker.logger import logger
from broker.models.instrument import InstrumentModel
from broker.models.market_data import MarketDataModel
from broker.models.order import OrderModel
from broker.models.user import UserModel
from broker.schemas.schemas import (
    InstrumentType,
    OrderSide,
    OrderStatus,
    OrderType,
    TransactionSide
)


# pagination
def get_total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit)


def get_skip(page: int, limit: int) -> int:
    return (page - 1) * limit


# users
async def get_user_id_by_account_number(account_number: str, db: AsyncSession) -> int:
    result = await db.execute(select(UserModel.id).filter_by(account_number=account_number))
    user_id = result.scalar_one_or_none()
    if user_id is None:
        raise NotFound(f"No user found with the provided account number: {account_number}")
    return user_id


async def lock_user(user_id: int, db: AsyncSession):
    # row lock held until the session commits; ignored by SQLite
    await db.execute(select(UserModel.id).filter_by(id=user_id).with_for_update())


# instruments
async def get_instrument_id_by_ticker(ticker: str, db: AsyncSession) -> int:
    result = await db.execute(select(InstrumentModel.id).filter_by(ticker=ticker))
    instrument_id = result.scalar_one_or_none()
    if instrument_id is None:
        raise NotFound(f"No assets found with the provided ticker: {ticker}")
    return instrument_id


async def get_currency_id(ticker: str, db: AsyncSession) -> int:
    result = await db.execute(
        select(InstrumentModel.id).filter_by(ticker=ticker, type=InstrumentType.CURRENCY)
    )
    instrument_id = result.scalar_one_or_none()
    if instrument_id is None:
        raise NotFound(
            f"No assets found with the provided ticker: {ticker} and type: {InstrumentType.CURRENCY.value}"
        )
    return instrument_id


def contains_pattern(value: str) -> str:
    """Substring LIKE pattern in which `%` and `_` from the caller match literally."""
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


async def search_instruments(ticker: Optional[str], name: Optional[str], page: int, limit: int,
                             db: AsyncSession):
    filters = []
    if ticker:
        filters.append(InstrumentModel.ticker.ilike(contains_pattern(ticker), escape="\\"))
    if name:
        filters.append(InstrumentModel.name.ilike(contains_pattern(name), escape="\\"))

    query = select(InstrumentModel)
    count_query = select(func.count(InstrumentModel.id))
    if filters:
        query = query.where(or_(*filters))
        count_query = count_query.where(or_(*filters))

    total = (await db.execute(count_query)).scalar_one()
    result = await db.execute(
        query
        .order_by(InstrumentModel.id)
        .offset(get_skip(page, limit))
        .limit(limit)
    )
    return list(result.scalars().all()), total


# market data
async def get_market_data_by_instrument_id(instrument_id: int, db: AsyncSession) -> MarketDataModel:
    result = await db.execute(
        select(MarketDataModel)
        .filter_by(instrument_id=instrument_id)
        .order_by(desc(MarketDataModel.date), desc(MarketDataModel.id))
        .limit(1)
    )
    market_data = result.scalars().first()
    if market_data is None:
        raise NotFound(f"No market data found for the instrument with id {instrument_id}")
    return market_data


async def get_market_data_by_instrument_ids(instrument_ids: List[int], db: AsyncSession) -> List[MarketDataModel]:
    """Most recent quote of each instrument; instruments without quotes are absent."""
    if not instrument_ids:
        return []

    latest = (
        select(
            MarketDataModel.instrument_id.label("instrument_id"),
            func.max(MarketDataModel.date).label("max_date")
        )
        .where(MarketDataModel.instrument_id.in_(instrument_ids))
        .group_by(MarketDataModel.instrument_id)
        .subquery()
    )
    result = await db.execute(
        select(MarketDataModel)
        .join(
            latest,
            and_(
                MarketDataModel.instrument_id == latest.c.instrument_id,
                MarketDataModel.date == latest.c.max_date
            )
        )
        .order_by(MarketDataModel.instrument_id, desc(MarketDataModel.id))
    )

    # several quotes can share the latest date; keep the newest row
    rows = {}
    for market_data in result.scalars().all():
        rows.setdefault(market_data.instrument_id, market_data)
    return list(rows.values())


# orders
async def get_filled_orders_by_user_id(user_id: int, db: AsyncSession) -> List[OrderModel]:
    result = await db.execute(
        select(OrderModel)
        .filter_by(user_id=user_id, status=OrderStatus.FILLED)
        .order_by(OrderModel.id)
    )
    return list(result.scalars().all())


async def get_filled_orders_by_user_and_instrument(user_id: int, instrument_id: int,
                                                   db: AsyncSession) -> List[OrderModel]:
    result = await db.execute(
        select(OrderModel)
        .filter_by(user_id=user_id, instrument_id=instrument_id, status=OrderStatus.FILLED)
        .order_by(OrderModel.id)
    )
    return list(result.scalars().all())


async def get_cash_orders_by_user_id(user_id: int, db: AsyncSession) -> List[OrderModel]:
    result = await db.execute(
        select(OrderModel)
        .where(
            and_(
                OrderModel.user_id == user_id,
                OrderModel.side.in_([OrderSide.CASH_IN, OrderSide.CASH_OUT])
            )
        )
        .order_by(OrderModel.id)
    )
    return list(result.scalars().all())


async def get_distinct_instrument_ids(user_id: int, db: AsyncSession) -> List[int]:
    result = await db.execute(
        select(OrderModel.instrument_id)
        .filter_by(user_id=user_id, status=OrderStatus.FILLED)
        .distinct()
    )
    return list(result.scalars().all())


async def get_order_by_id_and_user_id(order_id: int, user_id: int, db: AsyncSession) -> OrderModel:
    result = await db.execute(select(OrderModel).filter_by(id=order_id, user_id=user_id))
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFound("Order not found for the given ID and user ID.")
    return order


async def is_order_cancelled(order_id: int, db: AsyncSession) -> bool:
    result = await db.execute(
        select(OrderModel.id)
        .filter_by(origin_id=order_id, status=OrderStatus.CANCELLED)
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def get_market_orders_by_user_id(user_id: int, page: int, limit: int, db: AsyncSession):
    trade_sides = [OrderSide(side.value) for side in TransactionSide]
    condition = and_(OrderModel.user_id == user_id, OrderModel.side.in_(trade_sides))

    total = (await db.execute(select(func.count(OrderModel.id)).where(condition))).scalar_one()
    result = await db.execute(
        select(OrderModel)
        .where(condition)
        .order_by(desc(OrderModel.datetime), desc(OrderModel.id))
        .offset(get_skip(page, limit))
        .limit(limit)
    )
    return list(result.scalars().all()), total


def build_order(user_id: int, instrument_id: int, price, size: int, type: OrderType,
                side: OrderSide, status: OrderStatus, origin_id: Optional[int] = None) -> OrderModel:
    return OrderModel(
        user_id=user_id,
        instrument_id=instrument_id,
        price=price,
        size=size,
        type=type,
        side=side,
        status=status,
        origin_id=origin_id
    )


async def create_bulk_orders(orders: List[OrderModel], db: AsyncSession) -> List[int]:
    """Insert every order in one commit: either all rows land or none do."""
    db.add_all(orders)
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("ORDER INSERT ERROR")
        raise OrderCreationFailed("No orders were created. Something went wrong.")
    return [order.id for order in orders if order.id is not None]


async def create_rejected_order(user_id: int, instrument_id: int, price, size: int, type: OrderType,
                                side: OrderSide, db: AsyncSession) -> OrderModel:
    order = build_order(user_id, instrument_id, price, size, type, side, OrderStatus.REJECTED)
    await create_bulk_orders([order], db)
    return order
