import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, FileResponse
from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.orm import Session

from config import settings, configure_logging
from db import SessionLocal, init_db
from refresh import Refresher, CONFLICT
from schema import Country, RefreshMarker, MARKER_ID

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    # creates tables and the refresh marker row if missing
    init_db()
    yield


app = FastAPI(lifespan=lifespan)

refresher = Refresher(session_factory=SessionLocal, summary_path=settings.summary_path)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = {}
    for err in exc.errors():
        loc = err.get("loc", [])
        # prefer the last location token as the field name
        field = loc[-1] if loc else "body"
        details[str(field)] = err.get("msg")
    return JSONResponse(status_code=400, content={"error": "Validation failed", "details": details})


@app.exception_handler(Exception)
async def internal_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class CountryOut(BaseModel):
    id: int
    name: str
    capital: Optional[str]
    region: Optional[str]
    population: int
    currency_code: Optional[str]
    exchange_rate: Optional[float]
    estimated_gdp: Optional[float]
    flag_url: Optional[str]
    last_refreshed_at: Optional[datetime]

    class Config:
        from_attributes = True


@app.post("/countries/refresh")
def refresh_countries():
    # sync handler: runs in the threadpool, so overlapping calls really overlap
    result = refresher.refresh()
    if result.status == CONFLICT:
        return JSONResponse(status_code=429, content={"error": "Refresh already in progress"})
    if not result.ok:
        return JSONResponse(
            status_code=503,
            content={"error": "External data source unavailable", "details": result.details},
        )
    return {
        "message": "Countries refreshed successfully",
        "last_refreshed_at": result.last_refreshed_at.isoformat(),
        "processed": result.processed,
        "skipped": result.skipped,
    }


@app.get("/countries", response_model=List[CountryOut])
def list_countries(
    region: Optional[str] = Query(None),
    currency: Optional[str] = Query(None),
    sort: Optional[str] = Query(None, pattern="^gdp_(asc|desc)$"),
    db: Session = Depends(get_db),
):
    q = db.query(Country)
    if region:
        q = q.filter(Country.region == region)
    if currency:
        q = q.filter(Country.currency_code == currency)
    if sort == "gdp_desc":
        q = q.order_by(Country.estimated_gdp.is_(None), Country.estimated_gdp.desc())
    elif sort == "gdp_asc":
        q = q.order_by(Country.estimated_gdp.is_(None), Country.estimated_gdp.asc())
    else:
        q = q.order_by(Country.id)
    return q.all()


# declared before /countries/{name} so "image" is not taken for a country name
@app.get("/countries/image")
def get_image():
    path = refresher.summary_path
    if not os.path.exists(path):
        return JSONResponse(status_code=404, content={"error": "Summary image not found"})
    return FileResponse(path, media_type="image/png")


def _find_country(db: Session, name: str) -> Optional[Country]:
    return db.query(Country).filter(func.lower(Country.name) == name.lower()).first()


@app.get("/countries/{name}", response_model=CountryOut)
def get_country(name: str, db: Session = Depends(get_db)):
    c = _find_country(db, name)
    if not c:
        return JSONResponse(status_code=404, content={"error": "Country not found"})
    return c


@app.delete("/countries/{name}")
def delete_country(name: str, db: Session = Depends(get_db)):
    c = _find_country(db, name)
    if not c:
        return JSONResponse(status_code=404, content={"error": "Country not found"})
    db.delete(c)
    db.commit()
    return {"message": "Country deleted"}


@app.get("/status")
def status(db: Session = Depends(get_db)):
    total = db.query(func.count(Country.id)).scalar() or 0
    marker = db.get(RefreshMarker, MARKER_ID)
    last = marker.last_refreshed_at if marker else None
    return {"total_countries": total, "last_refreshed_at": last.isoformat() if last else None}
