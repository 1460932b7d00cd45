# broker/dependency.py
from broker.config import CURRENCY_TICKER
from broker.database.database import AsyncSessionLocal
from broker.strategies import build_strategy_factory, TransactionStrategyFactory

# one registry for the whole app, strategies hold no per-request state
strategy_factory = build_strategy_factory(AsyncSessionLocal, CURRENCY_TICKER)


def get_strategy_factory() -> TransactionStrategyFactory:
    return strategy_factory
