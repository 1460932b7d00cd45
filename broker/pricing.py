# broker/pricing.py
"""
Money arithmetic shared by the strategies and the balance aggregator.

Every money value derived from a product or a sum is truncated to cents
(never rounded up), so a derived amount can never overstate what the
account holds. Returns are percentages rounded to cents with halves going up.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_DOWN, ROUND_HALF_UP
from typing import Optional, Union

from broker.exceptions import InvalidInput, InvalidSide, MarketDataMissing
from broker.schemas.schemas import OrderSide


Number = Union[int, float, Decimal]

CENT = Decimal("0.01")

SIDE_MULTIPLIER = {
    OrderSide.BUY: 1,
    OrderSide.SELL: -1,
    OrderSide.CASH_IN: 1,
    OrderSide.CASH_OUT: -1,
}


@dataclass(frozen=True)
class FundsAvailability:
    has_funds: bool
    is_valid_assets: bool
    unit_price: Decimal
    total_assets: int
    total_spent: Decimal


@dataclass(frozen=True)
class AssetSellInfo:
    total_assets_to_sell: int
    total_amount_obtained: Decimal
    sell_price: Decimal


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() keeps the literal the caller meant: 1.005 stays 1.005
        return Decimal(str(value))
    return Decimal(value)


def is_positive_number(value) -> bool:
    if value is None or isinstance(value, bool):
        return False
    if not isinstance(value, (int, float, Decimal)):
        return False
    return value > 0


def truncate_amount(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_FLOOR)


def round_percentage(value: Number) -> Decimal:
    # halves go towards positive infinity: 12.345 -> 12.35, -12.345 -> -12.34
    value = to_decimal(value)
    rounding = ROUND_HALF_UP if value >= 0 else ROUND_HALF_DOWN
    return value.quantize(CENT, rounding=rounding)


def calculate_total_amount(price: Number, size: Number) -> Decimal:
    return truncate_amount(to_decimal(price) * to_decimal(size))


def sum_amounts(amount_a: Number, amount_b: Number) -> Decimal:
    return truncate_amount(to_decimal(amount_a) + to_decimal(amount_b))


def get_multiplier(side) -> int:
    try:
        return SIDE_MULTIPLIER[OrderSide(side)]
    except (KeyError, ValueError):
        allowed = ", ".join(s.value for s in OrderSide)
        raise InvalidSide(
            f"Invalid order side type provided: {side} Please ensure the side is one of: {allowed}"
        ) from None


def signed_amount(side, price: Number, size: Number) -> Decimal:
    return get_multiplier(side) * calculate_total_amount(price, size)


def signed_quantity(side, size: int) -> int:
    return get_multiplier(side) * size


def closing_price(close: Optional[Number], previous_close: Optional[Number]) -> Decimal:
    """Today's close, or yesterday's while today's has not been posted."""
    if close is not None:
        return to_decimal(close)
    if previous_close is not None:
        return to_decimal(previous_close)
    raise MarketDataMissing("Market data has neither a close nor a previous close price.")


def total_return(closing: Number, executed_price: Number) -> Decimal:
    executed = to_decimal(executed_price)
    if executed == 0:
        return Decimal("0")
    result = (to_decimal(closing) - executed) / executed * 100
    return round_percentage(result)


def merge_returns(old_return: Number, new_return: Number) -> Decimal:
    # plain mean of the two figures, not weighted by lot size
    return round_percentage((to_decimal(old_return) + to_decimal(new_return)) / 2)


def calculate_total_assets(purchase_price: Number, available_amount: Number):
    """Whole units affordable with `available_amount` and what they cost."""
    price = to_decimal(purchase_price)
    if price <= 0:
        total_assets = 0
    else:
        ratio = to_decimal(available_amount) / price
        total_assets = int(ratio.to_integral_value(rounding=ROUND_FLOOR))
    return total_assets, calculate_total_amount(price, total_assets)


def _check_positive_inputs(quantity, price, total_amount):
    if not (is_positive_number(quantity) or is_positive_number(price) or is_positive_number(total_amount)):
        raise InvalidInput(
            "Invalid input provided. Quantity, price, and totalAmount must be positive numbers."
        )


def has_available_funds(
        cash: Number,
        purchase_price: Number,
        quantity: Optional[int],
        total_amount: Optional[Number],
        price: Optional[Number],
        is_limit_order: bool
) -> FundsAvailability:
    """
    Resolve how many units a buy gets and what it spends.

    The unit price is the client price for LIMIT orders and the market
    price otherwise. Whatever combination of quantity / totalAmount is
    supplied, the result always goes through the same floor-then-truncate
    derivation, so resolving an already resolved order gives the same figures.
    """
    _check_positive_inputs(quantity, price, total_amount)

    purchase_price = to_decimal(purchase_price)
    if is_limit_order:
        unit_price = to_decimal(price) if price is not None else None
    else:
        unit_price = purchase_price

    if quantity is None and unit_price is None:
        if total_amount is None:
            raise InvalidInput("totalAmount is required if quantity is not provided.")
        total, amount = calculate_total_assets(purchase_price, total_amount)
        unit_price = purchase_price
    elif quantity is not None and unit_price is not None:
        total, amount = calculate_total_assets(unit_price, calculate_total_amount(unit_price, quantity))
    elif quantity is not None:
        total, amount = calculate_total_assets(purchase_price, calculate_total_amount(purchase_price, quantity))
        unit_price = purchase_price
    else:
        if total_amount is None:
            raise InvalidInput("totalAmount is required if quantity is not provided.")
        total, amount = calculate_total_assets(unit_price, total_amount)

    is_valid_assets = is_positive_number(total)

    return FundsAvailability(
        has_funds=to_decimal(cash) >= amount,
        is_valid_assets=is_valid_assets,
        unit_price=unit_price,
        total_assets=total if is_valid_assets else 0,
        total_spent=amount,
    )


def calculate_max_assets_sellable(owned_assets: int, sell_price: Number, cash: Optional[Number]) -> AssetSellInfo:
    sell_price = to_decimal(sell_price)
    total_assets_to_sell = owned_assets

    if is_positive_number(cash) and sell_price > 0:
        max_assets = int((to_decimal(cash) / sell_price).to_integral_value(rounding=ROUND_FLOOR))
        total_assets_to_sell = min(total_assets_to_sell, max_assets)

    return AssetSellInfo(
        total_assets_to_sell=total_assets_to_sell,
        total_amount_obtained=calculate_total_amount(sell_price, total_assets_to_sell),
        sell_price=sell_price,
    )


def calculate_assets_sale(
        owned_assets: int,
        sell_price: Number,
        total_amount: Optional[Number],
        quantity: Optional[int],
        price: Optional[Number],
        is_limit_order: bool
) -> AssetSellInfo:
    """Resolve a sale; the result never exceeds `owned_assets`."""
    _check_positive_inputs(quantity, price, total_amount)

    sell_price = to_decimal(sell_price)
    if is_limit_order:
        unit_price = to_decimal(price) if price is not None else None
    else:
        unit_price = sell_price
    amount = total_amount

    if quantity is None and unit_price is None and amount is not None:
        return calculate_max_assets_sellable(owned_assets, sell_price, amount)
    elif unit_price is None and quantity is not None:
        unit_price = sell_price
        amount = calculate_total_amount(unit_price, quantity)
    elif quantity is None and amount is not None and unit_price is not None:
        return calculate_max_assets_sellable(owned_assets, unit_price, amount)
    elif quantity is not None and unit_price is not None:
        amount = calculate_total_amount(unit_price, quantity)

    return calculate_max_assets_sellable(owned_assets, unit_price, amount)
