import io
import logging
import os
import tempfile
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from PIL import Image, ImageDraw, ImageFont
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from store import read_summary

logger = logging.getLogger(__name__)

WIDTH, HEIGHT = 800, 600
BACKGROUND = (244, 244, 244)
INK = (44, 62, 80)


def format_gdp(value: Optional[float]) -> str:
    if value is None:
        return "N/A"
    return f"{round(value):,}"


def summary_lines(
    total: int,
    ranked: Sequence[Tuple[str, Optional[float]]],
    timestamp: Optional[datetime],
) -> List[str]:
    """Text content of the summary image, top to bottom."""
    lines = [
        "Country Summary",
        f"Total Countries: {total}",
        "Top 5 Countries by Estimated GDP:",
    ]
    if not ranked:
        lines.append("No GDP data available.")
    for idx, (name, gdp) in enumerate(ranked, start=1):
        lines.append(f"{idx}. {name} - {format_gdp(gdp)}")
    stamp = timestamp.isoformat() if timestamp else "never"
    lines.append(f"Last Refreshed: {stamp}")
    return lines


def render_summary(
    total: int,
    ranked: Sequence[Tuple[str, Optional[float]]],
    timestamp: Optional[datetime],
) -> bytes:
    """Draw the summary onto a fixed-size canvas and return PNG bytes."""
    im = Image.new("RGB", (WIDTH, HEIGHT), BACKGROUND)
    draw = ImageDraw.Draw(im)
    font = ImageFont.load_default()

    title, *body = summary_lines(total, ranked, timestamp)
    draw.text((50, 40), title, fill=INK, font=font)
    y = 100
    for line in body[:-1]:
        draw.text((50, y), line, fill=INK, font=font)
        y += 30
    draw.text((50, HEIGHT - 80), body[-1], fill=INK, font=font)

    buf = io.BytesIO()
    im.save(buf, format="PNG")
    return buf.getvalue()


def _write_atomic(path: str, payload: bytes):
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=directory, suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(payload)
        os.replace(tmp, path)
    except OSError:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise


def regenerate(session_factory: sessionmaker, path: str, render=render_summary) -> Tuple[bool, Optional[str]]:
    """Rebuild the summary image at `path` from the committed snapshot.

    Returns (True, None) once the file is replaced, (False, cause) otherwise.
    """
    try:
        with session_factory() as session:
            data = read_summary(session)
        payload = render(data.total, data.top, data.last_refreshed_at)
        _write_atomic(path, payload)
    except (SQLAlchemyError, OSError, ValueError) as e:
        logger.error("summary image not written: %s", e)
        return False, str(e) or e.__class__.__name__

    logger.info("summary image written to %s", path)
    return True, None
