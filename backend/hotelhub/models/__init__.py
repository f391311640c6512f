from hotelhub.models.content import CityStats, HotelContent, HotelPOI, HotelReview, HotelTranslation
from hotelhub.models.margin import MarginRule
from hotelhub.models.price_alert import Notification, PriceAlert, PriceAlertHistory

__all__ = [
    "CityStats",
    "HotelContent",
    "HotelPOI",
    "HotelReview",
    "HotelTranslation",
    "MarginRule",
    "Notification",
    "PriceAlert",
    "PriceAlertHistory",
]
