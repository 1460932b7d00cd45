"""
Pytest configuration and shared fixtures for the broker API tests.

Every test gets a fresh SQLite file database seeded with one user, the
currency instrument, two stocks with quotes and a small order ledger.
"""
import pytest
from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.future import select

import broker.strategies
import broker.transactions
from broker.database.database import get_db
from broker.database.init_data import init_db
from broker.dependency import get_strategy_factory
from broker.main import app
from broker.models.instrument import InstrumentModel
from broker.models.market_data import MarketDataModel
from broker.models.order import OrderModel
from broker.models.user import UserModel
from broker.schemas.schemas import InstrumentType, OrderSide, OrderStatus, OrderType
from broker.strategies import build_strategy_factory
from broker.transactions import AccountLocks
from broker.utils import build_order, get_currency_id


CURRENCY_TICKER = "ARS"
ACCOUNT_NUMBER = "9999999"


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'broker_test.db'}")
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(autouse=True)
def fresh_account_locks(monkeypatch):
    # locks bind to the running loop, each test runs on its own
    monkeypatch.setattr(broker.transactions, "account_locks", AccountLocks())


def _order(user_id, instrument_id, side, size, price, status, order_type=OrderType.MARKET, when=None):
    return OrderModel(
        user_id=user_id,
        instrument_id=instrument_id,
        side=side,
        size=size,
        price=Decimal(price),
        status=status,
        type=order_type,
        datetime=when
    )


@pytest.fixture
async def seeded(engine, session_factory):
    """
    Ledger of the seeded user:
      cash   100000.00 in, -1500.00, +340.00, -500.00, -155.00   => 98185.00
      FERR   BUY 50 @ 30 (filled), SELL 10 @ 34 (filled),
             BUY 20 @ 25 LIMIT (new), BUY 5 @ 31 LIMIT (filled),
             SELL 100 @ 40 (rejected)                            => 45 owned
    """
    await init_db(engine, session_factory)

    async with session_factory() as db:
        user = UserModel(email="userTest@test.com", account_number=ACCOUNT_NUMBER)
        other_user = UserModel(email="other@test.com", account_number="1111111")
        ferr = InstrumentModel(ticker="FERR", name="Ferrum S.A.", type=InstrumentType.STOCKS)
        bma = InstrumentModel(ticker="BMA", name="Banco Macro S.A.", type=InstrumentType.STOCKS)
        nomd = InstrumentModel(ticker="NOMD", name="No Market Data S.A.", type=InstrumentType.STOCKS)
        db.add_all([user, other_user, ferr, bma, nomd])
        await db.flush()

        currency_id = await get_currency_id(CURRENCY_TICKER, db)

        db.add_all([
            MarketDataModel(instrument_id=ferr.id, date=date(2025, 3, 20), open=Decimal("29.50"),
                            high=Decimal("30.50"), low=Decimal("29.00"), close=Decimal("30.00"),
                            previous_close=Decimal("29.80")),
            MarketDataModel(instrument_id=ferr.id, date=date(2025, 3, 27), open=Decimal("35.80"),
                            high=Decimal("36.70"), low=Decimal("34.60"), close=Decimal("36.00"),
                            previous_close=Decimal("35.95")),
            MarketDataModel(instrument_id=bma.id, date=date(2025, 3, 27), open=Decimal("1490.00"),
                            high=Decimal("1510.00"), low=Decimal("1480.00"), close=None,
                            previous_close=Decimal("1500.00")),
        ])

        pending_limit = _order(user.id, ferr.id, OrderSide.BUY, 20, "25.00", OrderStatus.NEW,
                               OrderType.LIMIT, datetime(2023, 7, 12, 15, 14, 20))
        filled_limit = _order(user.id, ferr.id, OrderSide.BUY, 5, "31.00", OrderStatus.FILLED,
                              OrderType.LIMIT, datetime(2023, 7, 13, 12, 51, 20))
        orders = [
            _order(user.id, currency_id, OrderSide.CASH_IN, 1, "100000.00", OrderStatus.FILLED,
                   when=datetime(2023, 7, 12, 12, 11, 20)),
            _order(user.id, ferr.id, OrderSide.BUY, 50, "30.00", OrderStatus.FILLED,
                   when=datetime(2023, 7, 12, 12, 31, 20)),
            _order(user.id, currency_id, OrderSide.CASH_OUT, 1, "1500.00", OrderStatus.FILLED,
                   when=datetime(2023, 7, 12, 12, 31, 20)),
            _order(user.id, ferr.id, OrderSide.SELL, 10, "34.00", OrderStatus.FILLED,
                   when=datetime(2023, 7, 12, 14, 51, 20)),
            _order(user.id, currency_id, OrderSide.CASH_IN, 1, "340.00", OrderStatus.FILLED,
                   when=datetime(2023, 7, 12, 14, 51, 20)),
            pending_limit,
            _order(user.id, currency_id, OrderSide.CASH_OUT, 1, "500.00", OrderStatus.FILLED,
                   OrderType.LIMIT, datetime(2023, 7, 12, 15, 14, 20)),
            filled_limit,
            _order(user.id, currency_id, OrderSide.CASH_OUT, 1, "155.00", OrderStatus.FILLED,
                   OrderType.LIMIT, datetime(2023, 7, 13, 12, 51, 20)),
            _order(user.id, ferr.id, OrderSide.SELL, 100, "40.00", OrderStatus.REJECTED,
                   when=datetime(2023, 7, 13, 16, 11, 20)),
        ]
        for order in orders:
            db.add(order)
            await db.flush()

        await db.commit()

        return SimpleNamespace(
            user_id=user.id,
            other_user_id=other_user.id,
            account_number=ACCOUNT_NUMBER,
            currency_id=currency_id,
            ferr_id=ferr.id,
            bma_id=bma.id,
            nomd_id=nomd.id,
            pending_limit_id=pending_limit.id,
            filled_limit_id=filled_limit.id,
        )


@pytest.fixture
def strategy_factory(session_factory):
    return build_strategy_factory(session_factory, CURRENCY_TICKER)


@pytest.fixture
async def client(seeded, session_factory, strategy_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_strategy_factory] = lambda: strategy_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client

    app.dependency_overrides.clear()


@pytest.fixture
def fetch_orders(session_factory):
    """All orders of a user, oldest first."""
    async def _fetch(user_id):
        async with session_factory() as db:
            result = await db.execute(select(OrderModel).filter_by(user_id=user_id).order_by(OrderModel.id))
            return list(result.scalars().all())
    return _fetch


@pytest.fixture
def failing_cash_leg(monkeypatch):
    """Strategies build their cash legs without a size, so the paired insert fails."""
    def build_order_without_cash_size(*args, **kwargs):
        order = build_order(*args, **kwargs)
        if order.side in (OrderSide.CASH_IN, OrderSide.CASH_OUT):
            order.size = None
        return order

    monkeypatch.setattr(broker.strategies, "build_order", build_order_without_cash_size)
