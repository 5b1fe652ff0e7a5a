from sqlalchemy import (
    BigInteger,
    Column,
    Integer,
    String,
    Float,
    DateTime,
)
from sqlalchemy.orm import declarative_base


Base = declarative_base()

# the marker table always holds exactly this one row
MARKER_ID = 1


class Country(Base):
    __tablename__ = "countries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True, index=True)
    capital = Column(String(255), nullable=True)
    region = Column(String(255), nullable=True, index=True)
    population = Column(BigInteger, nullable=False)
    currency_code = Column(String(16), nullable=True, index=True)
    exchange_rate = Column(Float, nullable=True)
    estimated_gdp = Column(Float, nullable=True)
    flag_url = Column(String(1024), nullable=True)
    last_refreshed_at = Column(DateTime(timezone=True), nullable=True)


class RefreshMarker(Base):
    __tablename__ = "refresh_marker"

    id = Column(Integer, primary_key=True)
    last_refreshed_at = Column(DateTime(timezone=True), nullable=True)
