class SupplierError(Exception):
    def __init__(self, message: str, status_code: int | None = None, retryable: bool = True):
        self.message = message
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message)


class RetryableSearchError(Exception):
    code = "search_unavailable"

    def __init__(self, message: str, retry_after: int = 5):
        self.message = message
        self.retry_after = retry_after
        self.retryable = True
        super().__init__(message)


class SupplierUnavailableError(RetryableSearchError):
    code = "supplier_unavailable"


class FetchTimeoutError(RetryableSearchError):
    code = "fetch_timeout"


class CurrencyMismatchError(Exception):
    def __init__(self, rule_id: int, rule_currency: str | None, rate_currency: str):
        self.rule_id = rule_id
        self.rule_currency = rule_currency
        self.rate_currency = rate_currency
        super().__init__(
            f"Margin rule {rule_id} is fixed in {rule_currency}, cannot apply to a {rate_currency} rate"
        )


class HotelNotFoundError(Exception):
    def __init__(self, hotel_id: str):
        self.hotel_id = hotel_id
        super().__init__(f"Hotel {hotel_id} not found")
