# broker/api/assets.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from broker.database.database import get_db
from broker.schemas.schemas import PaginatedInstruments, SearchAssets
from broker.transactions import find_assets


router = APIRouter()


@router.get(
    path="/broker/assets/search",
    tags=["assets"],
    response_model=PaginatedInstruments,
    summary="Search assets in the market"
)
async def search_assets(
        query: SearchAssets = Depends(),
        db: AsyncSession = Depends(get_db)
):
    return await find_assets(query, db)
