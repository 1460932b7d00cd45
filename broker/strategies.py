# broker/strategies.py
import asyncio
from abc import ABC, abstractmethod
from typing import Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from broker.balance import get_available_stock, get_cash_balance
from broker.exceptions import (
    InsufficientFunds,
    InsufficientStock,
    InvalidCancelState,
    OrderCreationFailed,
    UnknownStrategy
)
from broker.logger import logger
from broker.models.order import OrderModel
from broker.pricing import (
    calculate_assets_sale,
    calculate_total_amount,
    closing_price,
    has_available_funds,
    is_positive_number
)
from broker.schemas.schemas import (
    CreateTransactionBody,
    OrderSide,
    OrderStatus,
    OrderType,
    SecondaryAction,
    SecondaryTransactionBody,
    TransactionSide
)
from broker.utils import (
    build_order,
    create_bulk_orders,
    create_rejected_order,
    get_currency_id,
    get_market_data_by_instrument_id,
    get_order_by_id_and_user_id,
    is_order_cancelled
)


def is_limit_order(order_type: OrderType) -> bool:
    return order_type == OrderType.LIMIT


def get_status_by_order_type(order_type: OrderType) -> OrderStatus:
    # limit orders wait for execution, market orders fill at the last close
    return OrderStatus.NEW if is_limit_order(order_type) else OrderStatus.FILLED


def is_cancellable(order: OrderModel) -> bool:
    return (
        order.status == OrderStatus.NEW
        and order.side == OrderSide.BUY
        and is_limit_order(order.type)
    )


class BaseStrategy:
    def __init__(self, session_factory: async_sessionmaker, currency_ticker: str):
        self.session_factory = session_factory
        self.currency_ticker = currency_ticker

    async def _read(self, query, *args):
        # one session per read, so independent reads can run side by side
        async with self.session_factory() as session:
            return await query(*args, session)

    @staticmethod
    async def _insert_orders(orders, db: AsyncSession):
        identifiers = await create_bulk_orders(orders, db)
        if len(identifiers) <= 0:
            raise OrderCreationFailed("No orders were created. Something went wrong.")
        return identifiers


class TransactionStrategy(BaseStrategy, ABC):
    @abstractmethod
    async def execute(self, user_id: int, instrument_id: int, body: CreateTransactionBody,
                      db: AsyncSession) -> None:
        ...


class SecondaryTransactionStrategy(BaseStrategy, ABC):
    @abstractmethod
    async def execute(self, user_id: int, order_id: int, body: SecondaryTransactionBody,
                      db: AsyncSession) -> None:
        ...


class BuyTransactionStrategy(TransactionStrategy):
    async def execute(self, user_id, instrument_id, body, db):
        status = get_status_by_order_type(body.orderType)

        market_data, cash, currency_id = await asyncio.gather(
            self._read(get_market_data_by_instrument_id, instrument_id),
            self._read(get_cash_balance, user_id),
            self._read(get_currency_id, self.currency_ticker)
        )

        purchase_price = closing_price(market_data.close, market_data.previous_close)

        funds = has_available_funds(
            cash,
            purchase_price,
            body.quantity,
            body.totalAmount,
            body.price,
            is_limit_order(body.orderType)
        )

        if not funds.has_funds or not funds.is_valid_assets:
            await create_rejected_order(
                user_id, instrument_id, funds.unit_price, funds.total_assets,
                body.orderType, OrderSide.BUY, db
            )
            logger.warning(
                f"BUY rejected for user {user_id}: cash {cash}, needs {funds.total_spent} "
                f"for {funds.total_assets} units of instrument {instrument_id}"
            )
            raise InsufficientFunds(
                f"Order rejected due to insufficient funds. A {body.orderType.value} order requires "
                f"enough balance to cover the price of {funds.unit_price} per unit."
            )

        await self._insert_orders([
            build_order(user_id, instrument_id, funds.unit_price, funds.total_assets,
                        body.orderType, OrderSide.BUY, status),
            build_order(user_id, currency_id, funds.total_spent, 1,
                        body.orderType, OrderSide.CASH_OUT, OrderStatus.FILLED)
        ], db)

        logger.info(
            f"BUY {body.orderType.value} {status.value}: user {user_id}, instrument {instrument_id}, "
            f"{funds.total_assets} @ {funds.unit_price}, spent {funds.total_spent}"
        )


class SellTransactionStrategy(TransactionStrategy):
    async def execute(self, user_id, instrument_id, body, db):
        owned_assets = await self._read(get_available_stock, user_id, instrument_id)

        if not is_positive_number(owned_assets) or (
                is_positive_number(body.quantity) and body.quantity > owned_assets):
            await create_rejected_order(
                user_id, instrument_id, body.price if body.price is not None else 0,
                body.quantity if body.quantity is not None else 0,
                body.orderType, OrderSide.SELL, db
            )
            logger.warning(
                f"SELL rejected for user {user_id}: owns {owned_assets} of instrument {instrument_id}, "
                f"requested {body.quantity}"
            )
            raise InsufficientStock(
                "Insufficient stock available to complete the sale order. "
                "Please ensure there are enough assets to proceed."
            )

        status = get_status_by_order_type(body.orderType)

        market_data, currency_id = await asyncio.gather(
            self._read(get_market_data_by_instrument_id, instrument_id),
            self._read(get_currency_id, self.currency_ticker)
        )

        market_price = closing_price(market_data.close, market_data.previous_close)

        sale = calculate_assets_sale(
            owned_assets,
            market_price,
            body.totalAmount,
            body.quantity,
            body.price,
            is_limit_order(body.orderType)
        )

        await self._insert_orders([
            build_order(user_id, instrument_id, sale.sell_price, sale.total_assets_to_sell,
                        body.orderType, OrderSide.SELL, status),
            build_order(user_id, currency_id, sale.total_amount_obtained, 1,
                        body.orderType, OrderSide.CASH_IN, OrderStatus.FILLED)
        ], db)

        logger.info(
            f"SELL {body.orderType.value} {status.value}: user {user_id}, instrument {instrument_id}, "
            f"{sale.total_assets_to_sell} @ {sale.sell_price}, obtained {sale.total_amount_obtained}"
        )


class CancelTransactionStrategy(SecondaryTransactionStrategy):
    async def execute(self, user_id, order_id, body, db):
        logger.debug(
            f"Canceling transaction ID {order_id} for user ID {user_id} with"
            + (f" reason: {body.reason}" if body.reason else "out a reason")
        )

        order = await get_order_by_id_and_user_id(order_id, user_id, db)

        if not is_cancellable(order) or await is_order_cancelled(order.id, db):
            raise InvalidCancelState(
                f"Transaction can only be canceled if it is in '{OrderStatus.NEW.value}' status, "
                f"with {OrderSide.BUY.value} side and {OrderType.LIMIT.value} order type."
            )

        currency_id = await self._read(get_currency_id, self.currency_ticker)

        await self._insert_orders([
            build_order(user_id, order.instrument_id, order.price, order.size,
                        order.type, order.side, OrderStatus.CANCELLED, origin_id=order.id),
            build_order(user_id, currency_id, calculate_total_amount(order.price, order.size), 1,
                        order.type, OrderSide.CASH_IN, OrderStatus.FILLED)
        ], db)

        logger.info(f"Order {order.id} cancelled for user {user_id}")


class TransactionStrategyFactory:
    """Registry from transaction side / secondary action to its strategy."""

    def __init__(self, transaction_strategies: Dict[TransactionSide, TransactionStrategy],
                 secondary_strategies: Dict[SecondaryAction, SecondaryTransactionStrategy]):
        self.transaction_strategies = transaction_strategies
        self.secondary_strategies = secondary_strategies

    def get_transaction_strategy(self, side) -> TransactionStrategy:
        strategy = self.transaction_strategies.get(side)
        if strategy is None:
            raise UnknownStrategy(
                f"No strategy found for transaction type: {side}. "
                "Please check the provided transaction type and try again."
            )
        return strategy

    def get_secondary_transaction_strategy(self, action) -> SecondaryTransactionStrategy:
        strategy = self.secondary_strategies.get(action)
        if strategy is None:
            raise UnknownStrategy(
                f"No strategy found for transaction type: {action}. "
                "Please check the provided transaction type and try again."
            )
        return strategy


def build_strategy_factory(session_factory: async_sessionmaker, currency_ticker: str) -> TransactionStrategyFactory:
    return TransactionStrategyFactory(
        transaction_strategies={
            TransactionSide.BUY: BuyTransactionStrategy(session_factory, currency_ticker),
            TransactionSide.SELL: SellTransactionStrategy(session_factory, currency_ticker),
        },
        secondary_strategies={
            SecondaryAction.CANCEL: CancelTransactionStrategy(session_factory, currency_ticker),
        }
    )
