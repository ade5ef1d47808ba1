# Import all ORM models here so Alembic's env.py picks up their metadata automatically.
from weatherboard.models.city import City
from weatherboard.models.reading import WeatherReading

__all__ = ["City", "WeatherReading"]
