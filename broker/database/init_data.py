# broker/database/init_data.py
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.future import select

from broker.config import CURRENCY_TICKER, CURRENCY_NAME
from broker.database.database import async_engine, Base, AsyncSessionLocal
from broker.logger import logger
from broker.models.instrument import InstrumentModel
from broker.models.market_data import MarketDataModel  # noqa: F401
from broker.models.order import OrderModel  # noqa: F401
from broker.models.user import UserModel  # noqa: F401
from broker.schemas.schemas import InstrumentType


currency_instrument = {
    "name": CURRENCY_NAME,
    "ticker": CURRENCY_TICKER
}


async def create_currency(db: AsyncSession):
    result = await db.execute(select(InstrumentModel).filter_by(ticker=currency_instrument["ticker"]))
    currency = result.scalar_one_or_none()
    if currency is None:
        db.add(InstrumentModel(
            name=currency_instrument["name"],
            ticker=currency_instrument["ticker"],
            type=InstrumentType.CURRENCY
        ))
        logger.info(f"Currency instrument {currency_instrument['ticker']} created")
    elif currency.type != InstrumentType.CURRENCY:
        logger.warning(f"Instrument {currency.ticker} exists but is not of type {InstrumentType.CURRENCY.value}")


async def init_db(engine: AsyncEngine = async_engine, session_factory: async_sessionmaker = AsyncSessionLocal):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as db:
        await create_currency(db)
        await db.commit()
