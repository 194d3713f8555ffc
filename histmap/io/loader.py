"""
Text loading for local files, zip archives and http(s) URLs.

Fetching is the only step that may suspend; parsing and store updates stay
synchronous and run after the text is available.
"""

from __future__ import annotations

import asyncio
import io
import logging
import zipfile
from pathlib import Path
from typing import Union

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

Source = Union[str, Path]


def is_url(source: Source) -> bool:
    return isinstance(source, str) and source.lower().startswith(("http://", "https://"))


def _decode(data: bytes) -> str:
    return data.decode("utf-8-sig")


def read_zip_text(data: bytes) -> str:
    """
    Return the text of the last file entry of a zip archive.

    Raises:
        ValueError: not a zip archive, or no file entries
    """
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            names = [n for n in zf.namelist() if not n.endswith("/")]
            if not names:
                raise ValueError("Zip archive contains no files")
            return _decode(zf.read(names[-1]))
    except zipfile.BadZipFile as e:
        raise ValueError(f"Invalid zip archive: {e}") from e


def _is_zip_name(name: str) -> bool:
    return name.lower().split("?", 1)[0].endswith(".zip")


async def load_text(source: Source, *, timeout: float = DEFAULT_TIMEOUT) -> str:
    """
    Load the text behind ``source``.

    Raises:
        ValueError: the file does not exist, is not text or the request failed
    """
    if is_url(source):
        async with httpx.AsyncClient(follow_redirects=True) as client:
            try:
                resp = await client.get(str(source), timeout=timeout)
                resp.raise_for_status()
            except httpx.HTTPError as e:
                logger.warning(f"Fetching {source} failed: {e}")
                raise ValueError(f"Unable to fetch {source}: {e}") from e
        data = resp.content
        name = str(source)
    else:
        path = Path(source)
        if not path.is_file():
            raise ValueError(f"File not found: {path}")
        data = await asyncio.to_thread(path.read_bytes)
        name = path.name

    if _is_zip_name(name) or data[:4] == b"PK\x03\x04":
        return read_zip_text(data)
    try:
        return _decode(data)
    except UnicodeDecodeError as e:
        raise ValueError(f"{name} is not a UTF-8 text file: {e}") from e


def load_text_sync(source: Source, *, timeout: float = DEFAULT_TIMEOUT) -> str:
    return asyncio.run(load_text(source, timeout=timeout))
