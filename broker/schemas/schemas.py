import pydantic
from pydantic import BaseModel, ConfigDict, Field, conint, condecimal, model_validator
from typing import Literal, Optional, List
import datetime as dt
from enum import Enum


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    CASH_IN = "CASH_IN"
    CASH_OUT = "CASH_OUT"


class OrderStatus(str, Enum):
    NEW = "NEW"
    FILLED = "FILLED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class OrderType(str, Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"


class InstrumentType(str, Enum):
    CURRENCY = "CURRENCY"
    STOCKS = "STOCKS"


class TransactionSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class SecondaryAction(str, Enum):
    CANCEL = "CANCEL"


class Ok(BaseModel):
    success: Literal[True] = True


# requests
class CreateTransactionBody(BaseModel):
    accountNumber: pydantic.constr(min_length=1, max_length=20)
    ticker: pydantic.constr(min_length=1, max_length=10)
    orderType: OrderType
    side: TransactionSide
    totalAmount: Optional[condecimal(ge=1, decimal_places=2)] = None
    quantity: Optional[conint(ge=1, le=1_000_000)] = None
    price: Optional[condecimal(gt=0, le=99_999_999, decimal_places=2)] = None

    @model_validator(mode="after")
    def check_amounts(self):
        if self.quantity is None and self.totalAmount is None:
            raise ValueError("quantity or totalAmount is required")
        if self.orderType == OrderType.LIMIT and self.price is None:
            raise ValueError(f"price is required when the order type is {OrderType.LIMIT.value}")
        return self


class SecondaryTransactionBody(BaseModel):
    accountNumber: pydantic.constr(min_length=1, max_length=20)
    secondaryAction: SecondaryAction
    reason: Optional[str] = None


class Pagination(BaseModel):
    page: conint(ge=1) = 1
    limit: conint(ge=1, le=100) = 10


class SearchAssets(Pagination):
    ticker: Optional[pydantic.constr(min_length=1, max_length=10)] = None
    name: Optional[pydantic.constr(min_length=1, max_length=255)] = None


# responses
class Instrument(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticker: str
    name: str
    type: InstrumentType


class Order(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    instrument: Instrument
    size: int
    price: float
    type: OrderType
    side: OrderSide
    status: OrderStatus
    datetime: Optional[dt.datetime] = None


class PaginatedInstruments(BaseModel):
    data: List[Instrument]
    total: int
    page: int
    limit: int
    totalPages: int


class PaginatedOrders(BaseModel):
    data: List[Order]
    total: int
    page: int
    limit: int
    totalPages: int


class AssetPosition(BaseModel):
    id: int
    ticker: str
    name: str
    quantity: int
    positionValue: float
    totalReturn: float


class BalanceReport(BaseModel):
    total: float
    cash: float
    assetPositions: List[AssetPosition] = Field(default_factory=list)

