from sqlalchemy import Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from weatherboard.db.base import Base


class City(Base):
    """A registered location. Managed outside the service; read-only here."""

    __tablename__ = "cities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
