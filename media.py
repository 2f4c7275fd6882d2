from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

import requests
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

APP_DIR = Path.home() / ".bibliofx"
COVERS_DIR = APP_DIR / "covers"


def _safe_name(identifier: str) -> str:
    return hashlib.sha1(identifier.encode("utf-8")).hexdigest()


def cached_cover_path(cover_url: str, covers_dir: Optional[Path] = None) -> Path:
    return (covers_dir or COVERS_DIR) / f"{_safe_name(cover_url)}.img"


def is_remote(cover_url: str) -> bool:
    return cover_url.startswith(("http://", "https://"))


def local_cover_path(cover_url: str) -> Path:
    """Resolve a ``file:`` URI or a plain filesystem path."""
    if cover_url.startswith("file:"):
        return Path(unquote(urlparse(cover_url).path))
    return Path(cover_url).expanduser()


def fetch_and_cache_cover(
    cover_url: Optional[str],
    *,
    covers_dir: Optional[Path] = None,
    session: Optional[requests.Session] = None,
) -> Optional[Path]:
    """Download a cover image (if any) and save it to the cache directory."""
    if not cover_url:
        return None

    target_path = cached_cover_path(cover_url, covers_dir)
    if target_path.exists():
        return target_path

    http = session or requests
    try:
        response = http.get(cover_url, timeout=15)
        response.raise_for_status()
    except requests.RequestException as error:
        logger.debug("Cover download failed for %s: %s", cover_url, error)
        return None

    try:
        target_path.parent.mkdir(parents=True, exist_ok=True)
        with open(target_path, "wb") as handle:
            handle.write(response.content)
    except OSError:
        logger.warning("Could not cache cover %s", cover_url)
        return None
    return target_path


def load_cover(
    cover_url: Optional[str],
    max_edge: Optional[int] = None,
    *,
    covers_dir: Optional[Path] = None,
    session: Optional[requests.Session] = None,
) -> Optional[Image.Image]:
    """Return the cover as a Pillow image, or ``None`` when it cannot be shown."""
    if not cover_url or not cover_url.strip():
        return None
    cover_url = cover_url.strip()

    if is_remote(cover_url):
        path = fetch_and_cache_cover(cover_url, covers_dir=covers_dir, session=session)
    else:
        path = local_cover_path(cover_url)
    if path is None or not path.exists():
        return None

    try:
        with Image.open(path) as opened:
            image = opened.copy()
    except (UnidentifiedImageError, OSError):
        logger.debug("Unreadable cover image at %s", path)
        return None
    if max_edge:
        image.thumbnail((max_edge, max_edge), Image.LANCZOS)
    return image
