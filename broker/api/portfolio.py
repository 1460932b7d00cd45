# broker/api/portfolio.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from broker.database.database import get_db
from broker.schemas.schemas import BalanceReport
from broker.transactions import get_portfolio_by_account_number


router = APIRouter()


@router.get(
    path="/broker/portfolio/{account_number}",
    tags=["portfolio"],
    response_model=BalanceReport,
    summary="Get the portfolio of a user by their account number"
)
async def get_portfolio(
        account_number: str,
        db: AsyncSession = Depends(get_db)
):
    return await get_portfolio_by_account_number(account_number, db)
