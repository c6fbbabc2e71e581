"""
Access to GE raw data containers.

The vendor reader itself lives outside this package. A backend object
implementing :class:`RawSource` opens a ScanArchive or P-file and hands back a
metadata handle, processing parameters and the raw handle for the container
kind. Backends are loaded from a Python module that defines ``RAW_SOURCE``.
"""

import enum
import importlib.util
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Protocol, Sequence, Tuple, Union

import numpy as np
import pydicom

from .config import SCAN_ARCHIVE_SUFFIXES
from .errors import ConfigurationError, ParameterLookupError, RawLoadError

logger = logging.getLogger(__name__)


class RawContainerKind(enum.Enum):
    SCAN_ARCHIVE = "ScanArchive"
    PFILE = "Pfile"


def classify(raw_file_path: Union[str, Path]) -> RawContainerKind:
    """Tell a ScanArchive from a P-file by its path, without opening it."""
    if Path(raw_file_path).suffix.lower() in SCAN_ARCHIVE_SUFFIXES:
        return RawContainerKind.SCAN_ARCHIVE
    return RawContainerKind.PFILE


class UnsignedInt(int):
    """Lookup kind for non-negative integer parameters such as CoilConfigUID."""


Vector3 = Tuple[float, float, float]


@dataclass(frozen=True)
class SliceCorners:
    upper_left: Vector3
    upper_right: Vector3
    lower_left: Vector3


@dataclass(frozen=True)
class SliceInfo:
    corners: SliceCorners
    orientation: int = 0


@dataclass(frozen=True)
class SliceInfoTable:
    slices: Sequence[SliceInfo] = field(default_factory=tuple)

    def _entry(self, index: int) -> SliceInfo:
        if not 0 <= index < len(self.slices):
            raise ParameterLookupError(
                "SliceTable", f"Slice index {index} outside slice table of {len(self.slices)} slices."
            )
        return self.slices[index]

    def acquired_slice_corners(self, index: int) -> SliceCorners:
        return self._entry(index).corners

    def slice_orientation(self, index: int) -> int:
        return self._entry(index).orientation

    def __len__(self):
        return len(self.slices)


@dataclass(frozen=True)
class ImageCorners:
    corners: SliceCorners
    orientation: int


_DEFAULTS = {bool: False, int: 0, UnsignedInt: 0}


def _matches(value: Any, kind: type) -> bool:
    if kind is bool:
        return isinstance(value, (bool, np.bool_))
    if kind in (int, UnsignedInt):
        if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, np.integer)):
            return False
        return kind is int or value >= 0
    return isinstance(value, kind)


class ProcessingParameters:
    """
    Named, typed processing values derived from raw header data.

    ``value`` is the lenient lookup: a missing key yields the default of the
    requested kind. ``value_strict`` fails on a missing key. Both fail when
    the stored value has the wrong kind.
    """

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self._values = dict(values or {})

    def _checked(self, key: str, kind: type):
        value = self._values[key]
        if not _matches(value, kind):
            raise ParameterLookupError(
                key, f"Processing parameter '{key}' is {type(value).__name__}, expected {kind.__name__}."
            )
        if kind is bool:
            return bool(value)
        if kind in (int, UnsignedInt):
            return int(value)
        return value

    def value(self, key: str, kind: type):
        if key not in self._values:
            if kind not in _DEFAULTS:
                raise ParameterLookupError(key)
            logger.debug(f"Processing parameter '{key}' not set, using {_DEFAULTS[kind]!r}")
            return _DEFAULTS[kind]
        return self._checked(key, kind)

    def value_strict(self, key: str, kind: type):
        if key not in self._values:
            raise ParameterLookupError(key)
        return self._checked(key, kind)

    def __contains__(self, key: str) -> bool:
        return key in self._values


# Descriptor graph reachable from the metadata handle. General modules are
# pydicom datasets used as plain field bags.

class DicomPatient(Protocol):
    general_module: Optional[pydicom.Dataset]


class DicomStudy(Protocol):
    general_module: Optional[pydicom.Dataset]
    patient: Optional[DicomPatient]


class DicomEquipment(Protocol):
    general_module: Optional[pydicom.Dataset]


class DicomSeries(Protocol):
    general_module: Optional[pydicom.Dataset]
    study: Optional[DicomStudy]
    equipment: Optional[DicomEquipment]


class MetadataHandle(Protocol):
    def is_calibration(self) -> bool: ...

    def is_epi(self) -> bool: ...

    def dicom_series(self) -> Optional[DicomSeries]: ...

    def dicom_image(self, pixels: np.ndarray, image_number: int, corners: ImageCorners,
                    series: DicomSeries) -> Optional[pydicom.Dataset]: ...

    def epi_processing_parameters(self) -> ProcessingParameters: ...


@dataclass
class ArchiveFrame:
    """One frame of k-space read from a ScanArchive, shaped (channels, samples)."""
    data: np.ndarray
    slice_index: int = 0
    echo_index: int = 0
    encode_step: int = 0


class ArchiveStorage(Protocol):
    available_control_count: int

    def frames(self, view_num: int) -> Iterable[ArchiveFrame]: ...


class ScanArchiveHandle(Protocol):
    view_count: int

    def archive_storage(self) -> ArchiveStorage: ...


class PfileHandle(Protocol):
    view_count: int
    slice_count: int
    echo_count: int

    def kspace_data(self, view_num: int, slice_index: int, echo_index: int) -> np.ndarray: ...


@dataclass
class LoadedRaw:
    kind: RawContainerKind
    metadata: MetadataHandle
    processing: ProcessingParameters
    scan_archive: Optional[ScanArchiveHandle] = None
    pfile: Optional[PfileHandle] = None

    @property
    def handle(self):
        return self.scan_archive if self.kind is RawContainerKind.SCAN_ARCHIVE else self.pfile


class RawSource:
    """
    Base class for vendor backends.

    Subclasses implement the two container-specific loaders. ``load`` wraps
    any backend failure in :class:`RawLoadError`.
    """

    def load_scan_archive(self, raw_file_path: str) -> LoadedRaw:
        raise NotImplementedError

    def load_pfile(self, raw_file_path: str) -> LoadedRaw:
        """Load a P-file with all available acquisitions and no anonymization."""
        raise NotImplementedError

    def load(self, raw_file_path: str, kind: Optional[RawContainerKind] = None) -> LoadedRaw:
        kind = kind or classify(raw_file_path)
        try:
            if kind is RawContainerKind.SCAN_ARCHIVE:
                loaded = self.load_scan_archive(raw_file_path)
            else:
                loaded = self.load_pfile(raw_file_path)
        except RawLoadError:
            raise
        except Exception as e:
            raise RawLoadError(f"Failed to load {kind.value} '{raw_file_path}': {e}") from e

        if loaded.kind is not kind:
            raise RawLoadError(f"Backend returned {loaded.kind.value} data for a {kind.value} file")
        if loaded.handle is None:
            raise RawLoadError(f"Backend returned no {kind.value} handle for '{raw_file_path}'")
        return loaded


def load_raw_source(module_path: str) -> RawSource:
    """
    Load a vendor backend from a Python module.

    Args:
        module_path (str): Path to the module file.

    Returns:
        RawSource: The module's ``RAW_SOURCE`` object.

    Raises:
        ConfigurationError: If the module does not define ``RAW_SOURCE``.
    """
    if not Path(module_path).exists():
        raise ConfigurationError(f"Raw source module not found: {module_path}")

    spec = importlib.util.spec_from_file_location("ge2ismrmrd_raw_source", module_path)
    backend_module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(backend_module)

    if not hasattr(backend_module, "RAW_SOURCE"):
        raise ConfigurationError(f"The module {module_path} does not define 'RAW_SOURCE'.")

    raw_source = getattr(backend_module, "RAW_SOURCE")
    if not hasattr(raw_source, "load"):
        raise ConfigurationError("'RAW_SOURCE' must provide a load() method.")
    return raw_source
