from pydantic import Field

from hotelhub.schemas.search import SearchParams


class CreatePriceAlertRequest(SearchParams):
    hotel_id: str | None = None
    hotel_name: str | None = None
    current_price: float | None = Field(default=None, gt=0)
    threshold_percent: float | None = Field(default=None, gt=0, lt=100)
    cooldown_hours: int | None = Field(default=None, ge=0)
