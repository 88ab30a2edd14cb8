"""
Device health and firmware eligibility
"""

import math
from typing import List, Optional, Tuple

from prodmon.dashboard.timeutil import now_ms
from prodmon.schemas.device import DeviceStatus
from prodmon.schemas.ota import ManifestInfo

OFFLINE_AFTER_MIN = 20
WARN_AFTER_MIN = 10

STATUS_TEXT = {
    "online": "Online",
    "warn": "Unstable connection",
    "offline": "Offline",
    "unknown": "Unknown",
}


def compute_status(last_server_ts_ms: Optional[int], current_ms: Optional[int] = None) -> DeviceStatus:
    """Infer online/offline from how old the last server timestamp is"""
    if not last_server_ts_ms:
        return DeviceStatus(tone="unknown", text=STATUS_TEXT["unknown"])

    current = now_ms() if current_ms is None else current_ms
    age_min = (current - last_server_ts_ms) / 1000 / 60
    if age_min > OFFLINE_AFTER_MIN:
        tone = "offline"
    elif age_min > WARN_AFTER_MIN:
        tone = "warn"
    else:
        tone = "online"
    return DeviceStatus(tone=tone, text=STATUS_TEXT[tone])


def parse_semver(version: str) -> List[int]:
    """``"0.1.10"`` -> ``[0, 1, 10]``; unparseable parts count as 0"""
    parts = []
    for chunk in str(version).strip().split("."):
        try:
            n = float(chunk)
        except ValueError:
            n = 0
        parts.append(int(n) if math.isfinite(n) else 0)
    return parts


def compare_semver(a: str, b: str) -> int:
    aa, bb = parse_semver(a), parse_semver(b)
    for i in range(max(len(aa), len(bb))):
        x = aa[i] if i < len(aa) else 0
        y = bb[i] if i < len(bb) else 0
        if x != y:
            return 1 if x > y else -1
    return 0


def ota_eligibility(status: DeviceStatus, current_version: Optional[str], manifest: Optional[ManifestInfo],
                    manifest_error: Optional[str] = None) -> Tuple[bool, Optional[str]]:
    """
    Decide whether a firmware update can be offered for a device.

    Returns:
        (enabled, disabled_reason); the reason is None when enabled
    """
    current = (current_version or "").strip()
    latest = (manifest.version if manifest else "").strip()

    if status.tone != "online":
        return False, "Offline (or unstable)"
    if not latest:
        if manifest_error:
            return False, f"Manifest fetch failed ({manifest_error})"
        return False, "Manifest not configured"
    if not current:
        return False, "No current version"
    if compare_semver(latest, current) <= 0:
        return False, "Already on the latest version"
    return True, None
