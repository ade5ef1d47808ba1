from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from weatherboard.db.base import Base
from weatherboard.models.city import City

# NUMERIC(5, 2) holds at most ±999.99
DECIMAL_PRECISION = 5
DECIMAL_SCALE = 2
DECIMAL_BOUND = 999.99


def _decimal_column(nullable: bool = False):
    return mapped_column(
        Numeric(DECIMAL_PRECISION, DECIMAL_SCALE, asdecimal=False), nullable=nullable
    )


class WeatherReading(Base):
    """One ingested observation for one city, keyed by (city_id, recorded_at).

    recorded_at is the ingestion time, not the provider's observation time
    (the latter is kept in ``dt``). Rows are replaced wholesale on key conflict
    and removed by the retention sweep.
    """

    __tablename__ = "weather_readings"

    city_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("cities.id", ondelete="CASCADE"),
        primary_key=True,
        nullable=False,
    )
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), primary_key=True, nullable=False
    )

    temp: Mapped[float] = _decimal_column()
    feels_like: Mapped[float] = _decimal_column()
    temp_min: Mapped[float] = _decimal_column()
    temp_max: Mapped[float] = _decimal_column()
    pressure: Mapped[int] = mapped_column(Integer, nullable=False)
    humidity: Mapped[int] = mapped_column(Integer, nullable=False)
    wind_speed: Mapped[float] = _decimal_column()
    wind_deg: Mapped[int] = mapped_column(Integer, nullable=False)
    cloudiness: Mapped[int] = mapped_column(Integer, nullable=False)
    visibility: Mapped[int] = mapped_column(Integer, nullable=False)

    weather_main: Mapped[str] = mapped_column(Text, nullable=False)
    weather_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    weather_icon: Mapped[str | None] = mapped_column(Text, nullable=True)

    sunrise: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sunset: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Provider place name, country code and observation epoch seconds
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country: Mapped[str | None] = mapped_column(String(10), nullable=True)
    dt: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    city: Mapped[City] = relationship(City, lazy="raise")
