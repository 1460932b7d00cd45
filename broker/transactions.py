# broker/transactions.py
import asyncio
import weakref

from sqlalchemy.ext.asyncio import AsyncSession

from broker.balance import get_portfolio
from broker.schemas.schemas import (
    BalanceReport,
    CreateTransactionBody,
    Instrument,
    Order,
    PaginatedInstruments,
    PaginatedOrders,
    Pagination,
    SearchAssets,
    SecondaryTransactionBody
)
from broker.strategies import TransactionStrategyFactory
from broker.utils import (
    get_instrument_id_by_ticker,
    get_market_orders_by_user_id,
    get_total_pages,
    get_user_id_by_account_number,
    lock_user,
    search_instruments
)


class AccountLocks:
    """
    One asyncio.Lock per user, so reads and writes of an account never interleave.

    Entries are weak: a lock lives only while a request holds or awaits it.
    """

    def __init__(self):
        self._locks = weakref.WeakValueDictionary()

    def __call__(self, user_id: int) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def __len__(self):
        return len(self._locks)


account_locks = AccountLocks()


async def create_transaction(body: CreateTransactionBody, factory: TransactionStrategyFactory,
                             db: AsyncSession):
    user_id = await get_user_id_by_account_number(body.accountNumber, db)
    instrument_id = await get_instrument_id_by_ticker(body.ticker, db)

    strategy = factory.get_transaction_strategy(body.side)

    async with account_locks(user_id):
        await lock_user(user_id, db)
        await strategy.execute(user_id, instrument_id, body, db)


async def cancel_transaction(order_id: int, body: SecondaryTransactionBody,
                             factory: TransactionStrategyFactory, db: AsyncSession):
    user_id = await get_user_id_by_account_number(body.accountNumber, db)

    strategy = factory.get_secondary_transaction_strategy(body.secondaryAction)

    async with account_locks(user_id):
        await lock_user(user_id, db)
        await strategy.execute(user_id, order_id, body, db)


async def get_transactions_by_account_number(account_number: str, query: Pagination,
                                             db: AsyncSession) -> PaginatedOrders:
    user_id = await get_user_id_by_account_number(account_number, db)
    orders, total = await get_market_orders_by_user_id(user_id, query.page, query.limit, db)
    return PaginatedOrders(
        data=[Order.model_validate(order) for order in orders],
        total=total,
        page=query.page,
        limit=query.limit,
        totalPages=get_total_pages(total, query.limit)
    )


async def get_portfolio_by_account_number(account_number: str, db: AsyncSession) -> BalanceReport:
    user_id = await get_user_id_by_account_number(account_number, db)
    return await get_portfolio(user_id, db)


async def find_assets(query: SearchAssets, db: AsyncSession) -> PaginatedInstruments:
    instruments, total = await search_instruments(query.ticker, query.name, query.page, query.limit, db)
    return PaginatedInstruments(
        data=[Instrument.model_validate(instrument) for instrument in instruments],
        total=total,
        page=query.page,
        limit=query.limit,
        totalPages=get_total_pages(total, query.limit)
    )
