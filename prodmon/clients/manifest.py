"""
Firmware manifest loader
"""

import asyncio
from typing import Optional

import requests
import structlog

from prodmon.core.errors import ManifestError
from prodmon.schemas.ota import ManifestInfo

logger = structlog.get_logger(__name__)


def fetch_manifest(url: Optional[str], timeout: float = 10.0) -> Optional[ManifestInfo]:
    """
    Fetch the latest firmware manifest.

    Args:
        url: Manifest URL; ``None`` or empty means no manifest is configured
        timeout: Request timeout in seconds

    Returns:
        ManifestInfo, or None when no URL is configured

    Raises:
        ManifestError: On HTTP errors, invalid JSON or a missing version
    """
    if not url:
        return None

    try:
        response = requests.get(url, headers={"Cache-Control": "no-store"}, timeout=timeout)
    except requests.RequestException as e:
        logger.error("Manifest request failed", url=url, error=str(e))
        raise ManifestError(str(e)) from e

    if not response.ok:
        raise ManifestError(f"manifest HTTP {response.status_code}")

    try:
        body = response.json()
    except ValueError as e:
        raise ManifestError("manifest is not valid JSON") from e

    if not isinstance(body, dict):
        raise ManifestError("manifest has no version")

    version = str(body.get("version") or "").strip()
    if not version:
        raise ManifestError("manifest has no version")

    manifest_url = body.get("url")
    info = ManifestInfo(version=version, url=str(manifest_url) if manifest_url else None)
    logger.info("Firmware manifest loaded", version=info.version)
    return info


class ManifestCache:
    """Manifest loaded once per process; keeps the failure text for the admin view"""

    def __init__(self, url: Optional[str], timeout: float = 10.0):
        self.url = url
        self.timeout = timeout
        self.manifest: Optional[ManifestInfo] = None
        self.error: Optional[str] = None

    async def load(self) -> Optional[ManifestInfo]:
        try:
            self.manifest = await asyncio.to_thread(fetch_manifest, self.url, self.timeout)
            self.error = None
        except ManifestError as e:
            logger.warning("Firmware manifest unavailable", url=self.url, error=str(e))
            self.manifest = None
            self.error = str(e)
        return self.manifest
