# broker/exceptions.py
from fastapi import HTTPException


class BrokerError(HTTPException):
    """Base for every error raised by the broker core.

    Subclasses pin the HTTP status, so an error raised deep inside a strategy
    or a store query reaches the client unchanged.
    """
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(status_code=self.status_code, detail=detail)


# 400: malformed or missing input
class ValidationError(BrokerError):
    status_code = 400


class InvalidInput(ValidationError):
    pass


class InvalidSide(ValidationError):
    pass


class UnknownStrategy(ValidationError):
    pass


# 404: unknown user / instrument / order / quote
class NotFound(BrokerError):
    status_code = 404


# 400: request is well formed but breaks a trading rule
class BusinessRuleViolation(BrokerError):
    status_code = 400


class InsufficientFunds(BusinessRuleViolation):
    pass


class InsufficientStock(BusinessRuleViolation):
    pass


class InvalidCancelState(BusinessRuleViolation):
    pass


class MarketDataMissing(BusinessRuleViolation):
    pass


# 500: the store broke a guarantee the core relies on
class InternalInvariantViolation(BrokerError):
    status_code = 500


class OrderCreationFailed(InternalInvariantViolation):
    pass
