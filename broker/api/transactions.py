# broker/api/transactions.py
from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from broker.database.database import get_db
from broker.dependency import get_strategy_factory
from broker.schemas.schemas import (
    CreateTransactionBody,
    SecondaryTransactionBody,
    PaginatedOrders,
    Pagination,
    Ok
)
from broker.strategies import TransactionStrategyFactory
from broker.transactions import (
    create_transaction,
    cancel_transaction,
    get_transactions_by_account_number
)


summary_tags = {
    "list_transactions": "Get all transactions by account number",
    "create_transaction": "Create a new transaction",
    "cancel_transaction": "Cancel a transaction by ID"
}

router = APIRouter()


@router.get(
    path="/broker/transactions/account/{account_number}",
    tags=["transactions"],
    response_model=PaginatedOrders,
    summary=summary_tags["list_transactions"]
)
async def list_transactions(
        account_number: str,
        query: Pagination = Depends(),
        db: AsyncSession = Depends(get_db)
):
    return await get_transactions_by_account_number(account_number, query, db)


@router.post(
    path="/broker/transactions",
    tags=["transactions"],
    status_code=201,
    response_model=Ok,
    summary=summary_tags["create_transaction"]
)
async def create(
        body: CreateTransactionBody,
        factory: TransactionStrategyFactory = Depends(get_strategy_factory),
        db: AsyncSession = Depends(get_db)
):
    await create_transaction(body, factory, db)
    return Ok()


@router.delete(
    path="/broker/transactions/cancel/{order_id}",
    tags=["transactions"],
    status_code=201,
    response_model=Ok,
    summary=summary_tags["cancel_transaction"]
)
async def cancel(
        body: SecondaryTransactionBody,
        order_id: int = Path(gt=0),
        factory: TransactionStrategyFactory = Depends(get_strategy_factory),
        db: AsyncSession = Depends(get_db)
):
    await cancel_transaction(order_id, body, factory, db)
    return Ok()
