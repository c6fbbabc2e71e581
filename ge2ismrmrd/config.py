"""
Configuration for ge2ismrmrd.

This module holds the constants shared across the package and the loader for
the XML conversion configuration, which maps a pulse sequence (PSD) name to
the converter class, stylesheet and reconstruction profile used for it.
"""

import logging
from pathlib import Path
from typing import List, Optional

from lxml import etree
from pydantic import BaseModel, ValidationError

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Sequence converter class names accepted in a configuration file
GENERIC_CONVERTER = "GenericConverter"
NIH_2DFAST_CONVERTER = "NIH2dfastConverter"
NIH_EPI_CONVERTER = "NIHepiConverter"

# ScanArchive containers are HDF5 files
SCAN_ARCHIVE_SUFFIXES = (".h5",)

# Placeholder image used to obtain per-image timing from the vendor layer
PLACEHOLDER_IMAGE_SHAPE = (128, 128)

# Mapping used when no entry matches the requested PSD name
DEFAULT_PSDNAME = "default"

DEFAULT_DATASET_GROUP = "dataset"

CONFIG_NAMESPACE = "https://github.com/nih-fmrif/GEISMRMRD"

CONFIG_SCHEMA = f"""<?xml version="1.0" encoding="UTF-8" standalone="no"?>
<xs:schema xmlns="{CONFIG_NAMESPACE}"
    xmlns:xs="http://www.w3.org/2001/XMLSchema"
    elementFormDefault="qualified"
    targetNamespace="{CONFIG_NAMESPACE}">
    <xs:element name="conversionConfiguration">
        <xs:complexType>
            <xs:sequence>
                <xs:element maxOccurs="unbounded" minOccurs="1"
                    name="sequenceMapping" type="sequenceMappingType"/>
            </xs:sequence>
        </xs:complexType>
    </xs:element>
    <xs:complexType name="sequenceMappingType">
        <xs:all>
            <xs:element name="psdname" type="xs:string"/>
            <xs:element name="libraryPath" type="xs:string"/>
            <xs:element name="className" type="xs:string"/>
            <xs:element name="stylesheet" type="xs:string"/>
            <xs:element name="reconConfigName" type="xs:string"/>
        </xs:all>
    </xs:complexType>
</xs:schema>"""

MAPPING_FIELDS = ["psdname", "libraryPath", "className", "stylesheet", "reconConfigName"]


class SequenceMapping(BaseModel):
    psdname: str
    libraryPath: str
    className: str
    stylesheet: str
    reconConfigName: str

    def stylesheet_path(self, base_dir: Optional[Path] = None) -> Path:
        """
        Resolve the stylesheet of this mapping to a file path.

        Absolute paths are used as-is. Relative names are looked up among the
        bundled stylesheets first and then relative to ``base_dir``.
        """
        path = Path(self.stylesheet)
        if path.is_absolute():
            return path

        from .stylesheets import get_bundled_stylesheet_path
        try:
            return get_bundled_stylesheet_path(self.stylesheet)
        except FileNotFoundError:
            pass

        return (base_dir or Path.cwd()) / path


class ConversionConfiguration(BaseModel):
    mappings: List[SequenceMapping]
    source: Optional[str] = None

    def find_mapping(self, psdname: str) -> SequenceMapping:
        """
        Return the mapping for a PSD name.

        Falls back to the mapping named ``default`` when no entry matches.

        Raises:
            ConfigurationError: If neither the PSD name nor a default is mapped.
        """
        for mapping in self.mappings:
            if mapping.psdname == psdname:
                return mapping

        for mapping in self.mappings:
            if mapping.psdname == DEFAULT_PSDNAME:
                logger.info(f"No mapping for PSD '{psdname}', using default mapping")
                return mapping

        raise ConfigurationError(f"No sequence mapping found for PSD name '{psdname}'")

    @property
    def base_dir(self) -> Optional[Path]:
        return Path(self.source).parent if self.source else None


def _schema() -> etree.XMLSchema:
    return etree.XMLSchema(etree.fromstring(CONFIG_SCHEMA.encode("utf-8")))


def parse_configuration(text: str, source: Optional[str] = None) -> ConversionConfiguration:
    """
    Parse and validate a conversion configuration document.

    Args:
        text (str): The configuration XML.
        source (Optional[str]): Where the text came from, used to resolve
            relative stylesheet paths.

    Returns:
        ConversionConfiguration: The validated configuration.

    Raises:
        ConfigurationError: If the document is not well-formed or does not
            satisfy the configuration schema.
    """
    try:
        doc = etree.fromstring(text.encode("utf-8"))
    except etree.XMLSyntaxError as e:
        raise ConfigurationError(f"Failed to parse configuration: {e}") from e

    schema = _schema()
    if not schema.validate(doc):
        errors = "; ".join(str(err.message) for err in schema.error_log)
        raise ConfigurationError(f"Configuration does not match schema: {errors}")

    ns = {"c": CONFIG_NAMESPACE}
    mappings = []
    for node in doc.findall("c:sequenceMapping", ns):
        values = {name: (node.findtext(f"c:{name}", default="", namespaces=ns) or "").strip()
                  for name in MAPPING_FIELDS}
        try:
            mappings.append(SequenceMapping(**values))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid sequence mapping: {e}") from e

    return ConversionConfiguration(mappings=mappings, source=source)


def load_configuration(config_path: str) -> ConversionConfiguration:
    """
    Load a conversion configuration file.

    Args:
        config_path (str): Path to the configuration XML.

    Returns:
        ConversionConfiguration: The validated configuration.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the file is not a valid configuration.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.debug(f"Loading configuration from {path}")
    return parse_configuration(path.read_text(encoding="utf-8"), source=str(path))
