"""Hotel content models — static enrichment data loaded from supplier dumps."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Integer, Numeric, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from hotelhub.database import Base, JSONType


class HotelContent(Base):
    __tablename__ = "hotel_content"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    hid: Mapped[int] = mapped_column(Integer, nullable=False, unique=True, index=True)
    hotel_id: Mapped[str | None] = mapped_column(String(200), index=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    address: Mapped[str | None] = mapped_column(Text)
    city: Mapped[str | None] = mapped_column(String(200))
    city_normalized: Mapped[str | None] = mapped_column(String(200), index=True)
    country: Mapped[str | None] = mapped_column(String(100))
    country_code: Mapped[str | None] = mapped_column(String(2), index=True)
    latitude: Mapped[Decimal | None] = mapped_column(Numeric(9, 6))
    longitude: Mapped[Decimal | None] = mapped_column(Numeric(9, 6))
    star_rating: Mapped[int] = mapped_column(Integer, default=0)
    images: Mapped[list] = mapped_column(JSONType, default=list)
    main_image: Mapped[str | None] = mapped_column(Text)
    amenities: Mapped[list] = mapped_column(JSONType, default=list)
    amenity_groups: Mapped[list] = mapped_column(JSONType, default=list)
    policy_struct: Mapped[dict | None] = mapped_column(JSONType)
    check_in_time: Mapped[str | None] = mapped_column(String(10))
    check_out_time: Mapped[str | None] = mapped_column(String(10))
    dump_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class HotelTranslation(Base):
    __tablename__ = "hotel_translations"
    __table_args__ = (UniqueConstraint("hid", "language", name="uq_hotel_translations_hid_language"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    hid: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    language: Mapped[str] = mapped_column(String(10), nullable=False)
    name: Mapped[str] = mapped_column(String(500), nullable=False)


class HotelPOI(Base):
    __tablename__ = "hotel_pois"
    __table_args__ = (UniqueConstraint("hid", "language", name="uq_hotel_pois_hid_language"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    hid: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    language: Mapped[str] = mapped_column(String(10), nullable=False, default="en")
    poi: Mapped[list] = mapped_column(JSONType, default=list)  # [{type, sub_type, name, distance}]
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class HotelReview(Base):
    __tablename__ = "hotel_reviews"
    __table_args__ = (UniqueConstraint("hid", "language", name="uq_hotel_reviews_hid_language"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    hid: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    language: Mapped[str] = mapped_column(String(10), nullable=False, default="en")
    review_count: Mapped[int] = mapped_column(Integer, default=0)
    average_rating: Mapped[Decimal | None] = mapped_column(Numeric(4, 2))
    detailed_ratings: Mapped[dict | None] = mapped_column(JSONType)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class CityStats(Base):
    __tablename__ = "city_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    city_normalized: Mapped[str] = mapped_column(String(200), nullable=False, unique=True, index=True)
    city_display: Mapped[str] = mapped_column(String(200), nullable=False)
    country: Mapped[str | None] = mapped_column(String(100))
    country_code: Mapped[str | None] = mapped_column(String(2))
    total_hotels: Mapped[int] = mapped_column(Integer, default=0)
    rated_hotels: Mapped[int] = mapped_column(Integer, default=0)
    star_counts: Mapped[dict] = mapped_column(JSONType, default=dict)  # {"1": n, ..., "5": n}
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
