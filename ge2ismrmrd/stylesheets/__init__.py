"""
Bundled stylesheets and configuration for ge2ismrmrd.

Provides functions to list and load the XSLT stylesheets that ship with the
package, and the path of the default conversion configuration.
"""

import logging
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)

# Directory containing bundled stylesheets
_STYLESHEETS_DIR = Path(__file__).parent

DEFAULT_STYLESHEET = "default.xsl"
DEFAULT_CONFIGURATION = "default_config.xml"


def list_bundled_stylesheets() -> List[str]:
    """
    List all bundled stylesheet filenames.

    Returns:
        List of stylesheet filenames (e.g., ["default.xsl"])
    """
    return sorted(p.name for p in _STYLESHEETS_DIR.glob("*.xsl"))


def get_bundled_stylesheet_path(filename: str) -> Path:
    """
    Get the absolute path to a bundled stylesheet.

    Args:
        filename: Stylesheet filename (e.g., "default.xsl")

    Returns:
        Path to the stylesheet file.

    Raises:
        FileNotFoundError: If the stylesheet does not exist.
    """
    path = _STYLESHEETS_DIR / filename
    if not path.is_file():
        raise FileNotFoundError(f"Bundled stylesheet not found: {filename}")
    return path


def load_bundled_stylesheet(filename: str = DEFAULT_STYLESHEET) -> str:
    """Read a bundled stylesheet as text."""
    return get_bundled_stylesheet_path(filename).read_text(encoding="utf-8")


def get_default_configuration_path() -> Path:
    return _STYLESHEETS_DIR / DEFAULT_CONFIGURATION
