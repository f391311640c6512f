from datetime import date

from pydantic import BaseModel, Field, field_validator

from hotelhub.services.search_types import SearchSignature, Stay


class StayParams(BaseModel):
    checkin: date
    checkout: date
    adults: int = Field(default=2, ge=1, le=10)
    children: list[int] = Field(default_factory=list)
    currency: str = Field(default="USD", min_length=3, max_length=3)

    @field_validator("children", mode="before")
    @classmethod
    def split_children(cls, value):
        # Query strings carry ages as "5,8"
        if isinstance(value, str):
            return [int(v) for v in value.split(",") if v.strip()]
        return value

    def to_stay(self) -> Stay:
        return Stay.create(
            self.checkin,
            self.checkout,
            adults=self.adults,
            children=self.children,
            currency=self.currency,
        )


class SearchParams(StayParams):
    destination: str = Field(min_length=1, max_length=200)

    def to_signature(self) -> SearchSignature:
        return SearchSignature.create(
            self.destination,
            self.checkin,
            self.checkout,
            adults=self.adults,
            children=self.children,
            currency=self.currency,
        )
