# broker/balance.py
from decimal import Decimal
from typing import Dict, List, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from broker.exceptions import MarketDataMissing
from broker.models.market_data import MarketDataModel
from broker.models.order import OrderModel
from broker.pricing import (
    closing_price,
    merge_returns,
    signed_amount,
    signed_quantity,
    sum_amounts,
    total_return
)
from broker.schemas.schemas import AssetPosition, BalanceReport, InstrumentType
from broker.utils import (
    get_cash_orders_by_user_id,
    get_distinct_instrument_ids,
    get_filled_orders_by_user_and_instrument,
    get_filled_orders_by_user_id,
    get_market_data_by_instrument_ids
)


def is_cash(instrument_type: InstrumentType) -> bool:
    return instrument_type == InstrumentType.CURRENCY


def compute_balance(orders: List[OrderModel]) -> Tuple[Decimal, Decimal]:
    """Fold orders into (cash, assets), split by the instrument type of each order."""
    cash = Decimal("0")
    assets = Decimal("0")
    for order in orders:
        amount = signed_amount(order.side, order.price, order.size)
        if is_cash(order.instrument.type):
            cash = sum_amounts(cash, amount)
        else:
            assets = sum_amounts(assets, amount)
    return cash, assets


def compute_available_quantity(orders: List[OrderModel]) -> int:
    return sum(signed_quantity(order.side, order.size) for order in orders)


def _find_market_data(market_data: Dict[int, MarketDataModel], instrument_id: int) -> MarketDataModel:
    quote = market_data.get(instrument_id)
    if quote is None:
        raise MarketDataMissing(
            f"Market data not found for instrument with ID: {instrument_id}. "
            "Ensure that all instruments have corresponding market data."
        )
    return quote


def compute_asset_positions(orders: List[OrderModel], market_data: List[MarketDataModel]) -> List[AssetPosition]:
    """
    Group non-cash orders by instrument into positions valued at the latest close.

    Each order contributes its signed quantity and its signed value at the
    closing price; the position return is the running mean of per-order
    returns. Positions whose net quantity is not positive are dropped.
    """
    quotes = {quote.instrument_id: quote for quote in market_data}
    positions: Dict[int, dict] = {}

    for order in orders:
        instrument = order.instrument
        if is_cash(instrument.type):
            continue

        quote = _find_market_data(quotes, instrument.id)
        close = closing_price(quote.close, quote.previous_close)

        position_value = signed_amount(order.side, close, order.size)
        order_return = total_return(close, order.price)
        quantity = signed_quantity(order.side, order.size)

        position = positions.get(instrument.id)
        if position is None:
            positions[instrument.id] = {
                "id": instrument.id,
                "ticker": instrument.ticker,
                "name": instrument.name,
                "quantity": quantity,
                "positionValue": position_value,
                "totalReturn": order_return,
            }
        else:
            position["quantity"] += quantity
            position["positionValue"] = sum_amounts(position["positionValue"], position_value)
            position["totalReturn"] = merge_returns(position["totalReturn"], order_return)

    return [
        AssetPosition(
            id=position["id"],
            ticker=position["ticker"],
            name=position["name"],
            quantity=position["quantity"],
            positionValue=float(position["positionValue"]),
            totalReturn=float(position["totalReturn"])
        )
        for position in positions.values()
        if position["quantity"] > 0
    ]


async def get_cash_balance(user_id: int, db: AsyncSession) -> Decimal:
    orders = await get_cash_orders_by_user_id(user_id, db)
    cash, _ = compute_balance(orders)
    return cash


async def get_available_stock(user_id: int, instrument_id: int, db: AsyncSession) -> int:
    orders = await get_filled_orders_by_user_and_instrument(user_id, instrument_id, db)
    return compute_available_quantity(orders)


async def get_portfolio(user_id: int, db: AsyncSession) -> BalanceReport:
    orders = await get_filled_orders_by_user_id(user_id, db)
    instrument_ids = await get_distinct_instrument_ids(user_id, db)
    market_data = await get_market_data_by_instrument_ids(instrument_ids, db)

    cash, assets = compute_balance(orders)
    total = sum_amounts(cash, assets)

    return BalanceReport(
        total=float(total),
        cash=float(cash),
        assetPositions=compute_asset_positions(orders, market_data)
    )
