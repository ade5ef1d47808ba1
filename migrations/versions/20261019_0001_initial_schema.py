"""Initial schema — cities, weather_readings.

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── 1. cities (reference data, managed outside the service) ───────────────
    op.create_table(
        "cities",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("latitude", sa.Float, nullable=False),
        sa.Column("longitude", sa.Float, nullable=False),
    )

    # ── 2. weather_readings (one row per city per ingestion) ──────────────────
    op.create_table(
        "weather_readings",
        sa.Column(
            "city_id",
            sa.Integer,
            sa.ForeignKey("cities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("temp", sa.Numeric(5, 2), nullable=False),
        sa.Column("feels_like", sa.Numeric(5, 2), nullable=False),
        sa.Column("temp_min", sa.Numeric(5, 2), nullable=False),
        sa.Column("temp_max", sa.Numeric(5, 2), nullable=False),
        sa.Column("pressure", sa.Integer, nullable=False),
        sa.Column("humidity", sa.Integer, nullable=False),
        sa.Column("wind_speed", sa.Numeric(5, 2), nullable=False),
        sa.Column("wind_deg", sa.Integer, nullable=False),
        sa.Column("cloudiness", sa.Integer, nullable=False),
        sa.Column("visibility", sa.Integer, nullable=False),
        sa.Column("weather_main", sa.Text, nullable=False),
        sa.Column("weather_description", sa.Text, nullable=True),
        sa.Column("weather_icon", sa.Text, nullable=True),
        sa.Column("sunrise", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sunset", sa.DateTime(timezone=True), nullable=False),
        sa.Column("name", sa.String(100), nullable=True),
        sa.Column("country", sa.String(10), nullable=True),
        sa.Column("dt", sa.BigInteger, nullable=True),
        sa.PrimaryKeyConstraint("city_id", "recorded_at"),
    )
    # Serves both the latest-per-city read and the retention sweep
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_weather_readings_city_recorded_at "
        "ON weather_readings (city_id, recorded_at DESC)"
    )
    op.create_index(
        "ix_weather_readings_recorded_at", "weather_readings", ["recorded_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_weather_readings_recorded_at", table_name="weather_readings")
    op.execute("DROP INDEX IF EXISTS ix_weather_readings_city_recorded_at")
    op.drop_table("weather_readings")
    op.drop_table("cities")
