from fastapi import APIRouter
from broker.api.transactions import router as transactions_router
from broker.api.portfolio import router as portfolio_router
from broker.api.assets import router as assets_router


main_router = APIRouter()

main_router.include_router(transactions_router)
main_router.include_router(portfolio_router)
main_router.include_router(assets_router)
