# sportal/utils/misc_utils.py
from typing import Any, Dict, Optional

# Marker stored wherever a logo cannot be resolved
NO_LOGO: Optional[str] = None


def _width(size: Dict[str, Any]) -> int:
    try:
        return int((size.get("dimensions") or {}).get("width") or 0)
    except (TypeError, ValueError):
        return 0


def largest_logo(logo: Optional[Dict[str, Any]]) -> Optional[str]:
    """Returns the URL of the widest rendition in a PlayHQ logo object."""
    if not isinstance(logo, dict):
        return NO_LOGO
    sizes = [s for s in logo.get("sizes") or [] if isinstance(s, dict)]
    if not sizes:
        return NO_LOGO
    return max(sizes, key=_width).get("url") or NO_LOGO


def format_venue_address(address: Optional[Dict[str, Any]]) -> Optional[str]:
    """'line1, suburb, state postcode', skipping missing parts."""
    if not address:
        return None
    region = " ".join(
        str(part) for part in (address.get("state"), address.get("postcode")) if part
    )
    parts = [address.get("line1"), address.get("suburb"), region]
    return ", ".join(str(part) for part in parts if part) or None


def str_or_none(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)
