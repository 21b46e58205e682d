"""
Trading error taxonomy

Every rejection the engine can produce derives from TradingError so the API
layer can map them to responses in one place.
"""


class TradingError(Exception):
    """Base class for rejected trading requests."""

    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidInput(TradingError):
    """Malformed symbol, quantity, price or other request field."""


class InsufficientFunds(TradingError):
    """Trade cost exceeds the account's cash balance."""

    def __init__(self, required, available):
        self.required = required
        self.available = available
        super().__init__("Insufficient funds")


class InsufficientShares(TradingError):
    """Sell quantity exceeds the shares held."""

    def __init__(self, symbol: str, requested: int, held: int):
        self.symbol = symbol
        self.requested = requested
        self.held = held
        super().__init__("Insufficient shares to sell")


class AccountNotFound(TradingError):
    status_code = 404

    def __init__(self, account_id):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class QuoteUnavailable(TradingError):
    """No quote for a symbol. Summaries degrade instead of raising this."""

    status_code = 404

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__("Stock not found")
