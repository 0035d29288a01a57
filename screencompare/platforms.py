"""
Header heights of mobile devices, used to crop status bars before comparing.
"""

from .compare import CropConfig

MOBILE_HEADERS = {
    "iPhone 7": {
        "portrait": {"header_height": 130},
        "landscape": {"header_height": 90},
    },
}


def get_platform_config(device: str, orientation: str) -> CropConfig:
    """Return the crop configuration for a device in the given orientation."""
    orientations = MOBILE_HEADERS.get(device)
    if orientations is None:
        raise KeyError(f"No header configuration for device: {device}")

    entry = orientations.get(orientation.lower())
    if entry is None:
        raise KeyError(f"No header configuration for {device} in orientation: {orientation}")

    return CropConfig(header_height=entry["header_height"])
