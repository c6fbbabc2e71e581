"""
GE raw data to ISMRMRD converter.

``GERawConverter`` owns the loaded raw data, the sequence converter chosen
for it and the stylesheet used to produce the ISMRMRD header.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

import ismrmrd

from .config import SequenceMapping
from .converters import SequenceConverter, resolve
from .errors import StylesheetNotConfiguredError
from .header import build_header
from .raw import RawContainerKind, RawSource, classify
from .stylesheets import load_bundled_stylesheet
from .transform import TransformEngine

logger = logging.getLogger(__name__)


class GERawConverter:
    """
    Convert one GE ScanArchive or P-file.

    Args:
        raw_file_path (str): Path to the raw data file.
        class_name (str): Sequence converter class name from the configuration.
        logging_enabled (bool): Log progress messages at INFO level.
        raw_source (RawSource): Vendor backend used to open the file.
        recon_config_name (str): Reconstruction profile label from the configuration.

    Raises:
        RawLoadError: If the raw file cannot be loaded.
        UnknownConverterError: If ``class_name`` is not a known converter.
    """

    def __init__(self, raw_file_path: str, class_name: str, logging_enabled: bool = False, *,
                 raw_source: RawSource, recon_config_name: str = ""):
        self.raw_file_path = str(raw_file_path)
        self.logging_enabled = logging_enabled
        self.recon_config_name = recon_config_name
        self.transform = TransformEngine()

        self.kind = classify(self.raw_file_path)
        self._log(f"Loading {self.kind.value}: {self.raw_file_path}")
        self.raw = raw_source.load(self.raw_file_path, self.kind)

        self.converter: SequenceConverter = resolve(class_name)
        self.converter.configure(self.raw)
        self._log(f"Using sequence converter {self.converter!r}")

    @classmethod
    def from_mapping(cls, raw_file_path: str, mapping: SequenceMapping, raw_source: RawSource,
                     logging_enabled: bool = False, base_dir: Optional[Path] = None,
                     stylesheet=None) -> "GERawConverter":
        """
        Construct a converter from a configuration mapping and load its stylesheet.

        A given ``stylesheet`` path replaces the mapping's stylesheet, which is then never read.
        """
        converter = cls(raw_file_path, mapping.className, logging_enabled,
                        raw_source=raw_source, recon_config_name=mapping.reconConfigName)
        converter.use_stylesheet_filename(stylesheet or mapping.stylesheet_path(base_dir))
        return converter

    def _log(self, message: str) -> None:
        if self.logging_enabled:
            logger.info(message)

    @property
    def metadata(self):
        return self.raw.metadata

    @property
    def processing(self):
        return self.raw.processing

    @property
    def num_views(self) -> int:
        return self.raw.handle.view_count

    def use_stylesheet_string(self, sheet: Union[str, bytes]) -> None:
        self.transform.set_stylesheet(sheet)

    def use_stylesheet_filename(self, filename) -> None:
        self._log(f"Loading stylesheet: {filename}")
        self.use_stylesheet_string(Path(filename).read_bytes())

    def use_bundled_stylesheet(self, name: str) -> None:
        self._log(f"Loading bundled stylesheet: {name}")
        self.use_stylesheet_string(load_bundled_stylesheet(name))

    def get_ismrmrd_xml_header(self) -> str:
        """
        Build the canonical GE header and transform it with the configured stylesheet.

        Returns:
            str: The ISMRMRD XML header.

        Raises:
            HeaderGenerationError: If building or transforming the header fails.
        """
        try:
            if not self.transform.is_configured:
                raise StylesheetNotConfiguredError()
            header = build_header(self.metadata, self.processing, self.kind, self.raw.scan_archive)
            self._log("Applying stylesheet...")
            return self.transform.render(header)
        except Exception as e:
            logger.error(f"Error in get_ismrmrd_xml_header(): {e}")
            raise

    def get_acquisitions(self, view_num: int) -> List[ismrmrd.Acquisition]:
        """
        Get the acquisitions of one view.

        Args:
            view_num (int): Non-negative view index.

        Returns:
            List[ismrmrd.Acquisition]: Acquisitions produced by the sequence converter.
        """
        if view_num < 0:
            raise ValueError(f"View number must be non-negative, got {view_num}")

        if self.kind is RawContainerKind.SCAN_ARCHIVE:
            return self.converter.get_acquisitions_from_archive(self.raw.scan_archive, view_num)
        return self.converter.get_acquisitions_from_pfile(self.raw.pfile, view_num)

    def get_recon_config_name(self) -> str:
        return self.recon_config_name
