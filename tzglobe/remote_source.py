# tzglobe/remote_source.py
"""Remote sources for the timezone GeoJSON dataset.

The dataset always travels as one serialized text blob:
- HttpGeoJsonSource: GET/PUT against an HTTP endpoint
- FileGeoJsonSource: a local .json/.geojson file (offline installs, tests)

fetch_text() returns None instead of raising; empty text means "no data".
publish_text() raises, since uploads are user actions.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import aiofiles
import aiohttp

import config


class HttpGeoJsonSource:
    """Dataset served over HTTP(S)."""

    def __init__(self, url: str, publish_url: str = None, proxy: str = None):
        self.url = url
        self.publish_url = publish_url or url
        self.proxy = proxy if proxy is not None else config.PROXY_URL

    async def fetch_text(self) -> Optional[str]:
        """Download the whole dataset.

        No total timeout: a large dataset on a slow link just takes long.

        Returns:
            Response body, or None on HTTP/network errors
        """
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=None)) as sess:
                async with sess.get(self.url, proxy=self.proxy) as resp:
                    if resp.status != 200:
                        logging.error(f"Timezone source error: HTTP {resp.status} from {self.url}")
                        return None
                    text = await resp.text()
                    logging.info(f"🌍 Downloaded {len(text)} characters from {self.url}")
                    return text
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logging.error(f"Timezone source error for {self.url}: {e}")
            return None

    async def publish_text(self, text: str):
        """Upload a new dataset (PUT, application/json)."""
        async with aiohttp.ClientSession() as sess:
            async with sess.put(
                self.publish_url,
                data=text.encode("utf-8"),
                headers={"Content-Type": "application/json"},
                proxy=self.proxy
            ) as resp:
                resp.raise_for_status()
        logging.info(f"📤 Published {len(text)} characters to {self.publish_url}")


class FileGeoJsonSource:
    """Dataset stored in a local file."""

    def __init__(self, path):
        self.path = Path(path)

    async def fetch_text(self) -> Optional[str]:
        if not self.path.exists():
            logging.warning(f"Timezone file not found: {self.path}")
            return None

        try:
            async with aiofiles.open(self.path, mode='r', encoding='utf-8') as f:
                return await f.read()
        except (OSError, UnicodeDecodeError) as e:
            logging.error(f"Error reading timezone file {self.path}: {e}")
            return None

    async def publish_text(self, text: str):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(self.path, mode='w', encoding='utf-8') as f:
            await f.write(text)
        logging.info(f"📤 Wrote {len(text)} characters to {self.path}")


def build_remote_source(location: str = None):
    """Build a source from a URL or a file path (default: TZ_GEOJSON_SOURCE).

    Returns:
        Source instance, or None when nothing is configured
    """
    location = location if location is not None else config.TZ_GEOJSON_SOURCE
    if not location:
        return None

    if location.lower().startswith(("http://", "https://")):
        publish_url = location
        if location == config.TZ_GEOJSON_SOURCE and config.TZ_GEOJSON_PUBLISH_URL:
            publish_url = config.TZ_GEOJSON_PUBLISH_URL
        return HttpGeoJsonSource(location, publish_url=publish_url)
    return FileGeoJsonSource(location)
