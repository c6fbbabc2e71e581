"""
XSLT transform of the canonical header into the final ISMRMRD header.
"""

import logging
from typing import Optional, Union

from lxml import etree

from .errors import StylesheetNotConfiguredError, TransformError

logger = logging.getLogger(__name__)


def _parser() -> etree.XMLParser:
    # Entity substitution and DTD loading apply to this parser only.
    return etree.XMLParser(resolve_entities=True, load_dtd=True)


def _as_bytes(text: Union[str, bytes]) -> bytes:
    return text.encode("utf-8") if isinstance(text, str) else text


def render(header: Union[etree._Element, str, bytes], stylesheet: Optional[Union[str, bytes]]) -> str:
    """
    Apply a stylesheet to a canonical header.

    Args:
        header: The header tree, or its serialized XML.
        stylesheet: The XSLT stylesheet text.

    Returns:
        str: The serialized transform result.

    Raises:
        StylesheetNotConfiguredError: If no stylesheet text is given.
        TransformError: If any step of parsing, compiling, applying or
            serializing fails.
    """
    if not stylesheet:
        raise StylesheetNotConfiguredError()

    if isinstance(header, etree._Element):
        header = etree.tostring(header, xml_declaration=True, encoding="UTF-8")
    if not header:
        raise TransformError("Generated GE header is empty.")

    parser = _parser()

    try:
        stylesheet_doc = etree.fromstring(_as_bytes(stylesheet), parser)
    except etree.XMLSyntaxError as e:
        raise TransformError(f"Failed to parse stylesheet from memory: {e}") from e

    try:
        transform = etree.XSLT(stylesheet_doc)
    except etree.XSLTParseError as e:
        del stylesheet_doc
        raise TransformError(f"Failed to parse XSLT stylesheet: {e}") from e

    try:
        header_doc = etree.fromstring(_as_bytes(header), parser)
    except etree.XMLSyntaxError as e:
        raise TransformError(f"Failed to parse GE header XML: {e}") from e

    logger.debug("Applying stylesheet")
    try:
        result = transform(header_doc)
    except etree.XSLTApplyError as e:
        raise TransformError(f"Error applying stylesheet: {e}") from e

    if result is None:
        raise TransformError("Error applying stylesheet: no result document")

    try:
        output = str(result)
    except Exception as e:
        raise TransformError(f"Error saving result to string: {e}") from e

    return output


class TransformEngine:
    """Holds the configured stylesheet and renders headers with it."""

    def __init__(self, stylesheet: Optional[Union[str, bytes]] = None):
        self.stylesheet = stylesheet

    def set_stylesheet(self, text: Union[str, bytes]) -> None:
        self.stylesheet = text

    @property
    def is_configured(self) -> bool:
        return bool(self.stylesheet)

    def render(self, header) -> str:
        return render(header, self.stylesheet)
