"""
Canonical GE header document.

Builds the intermediate ``Header`` XML tree from the vendor metadata handle
and processing parameters. Stylesheets match on this exact structure, so the
element order below is part of the contract.
"""

import logging
from typing import List, Optional

import numpy as np
from lxml import etree

from .config import PLACEHOLDER_IMAGE_SHAPE
from .errors import HeaderGenerationError, UnsupportedCombinationError
from .raw import (
    ImageCorners,
    MetadataHandle,
    ProcessingParameters,
    RawContainerKind,
    ScanArchiveHandle,
    SliceInfoTable,
    UnsignedInt,
)

logger = logging.getLogger(__name__)


class HeaderWriter:
    """Stack-based element writer producing an lxml tree."""

    def __init__(self):
        self.root = None
        self._open: List[etree._Element] = []

    def start_element(self, name: str) -> etree._Element:
        if self._open:
            element = etree.SubElement(self._open[-1], name)
        elif self.root is None:
            element = self.root = etree.Element(name)
        else:
            raise HeaderGenerationError(f"Cannot open <{name}>: document already closed")
        self._open.append(element)
        return element

    def end_element(self) -> None:
        if not self._open:
            raise HeaderGenerationError("No open element to close")
        self._open.pop()

    def add_element(self, name: str, text) -> etree._Element:
        if not self._open:
            raise HeaderGenerationError(f"Cannot add <{name}> outside the document")
        element = etree.SubElement(self._open[-1], name)
        element.text = "" if text is None else str(text)
        return element

    def add_boolean_element(self, name: str, value: bool) -> etree._Element:
        return self.add_element(name, "true" if value else "false")

    def end_document(self) -> etree._Element:
        while self._open:
            self.end_element()
        return self.root


def _require(value, what: str):
    if value is None:
        raise HeaderGenerationError(f"Vendor layer returned no {what}")
    return value


def _text(module, keyword: str) -> str:
    value = module.get(keyword, "")
    return "" if value is None else str(value)


def build_header(metadata: MetadataHandle, processing: ProcessingParameters,
                 kind: RawContainerKind,
                 scan_archive: Optional[ScanArchiveHandle] = None) -> etree._Element:
    """
    Build the canonical ``Header`` tree.

    Args:
        metadata (MetadataHandle): Vendor metadata handle.
        processing (ProcessingParameters): Processing parameters from the raw file.
        kind (RawContainerKind): Container kind the data was loaded from.
        scan_archive (Optional[ScanArchiveHandle]): Archive handle, needed for EPI.

    Returns:
        etree._Element: The ``Header`` root element.

    Raises:
        HeaderGenerationError: If any lookup or vendor call fails. The original
            error is chained as the cause.
    """
    logger.info("Starting conversion of raw file header to XML")
    try:
        writer = HeaderWriter()
        writer.start_element("Header")

        writer.add_boolean_element("is3DAcquisition", processing.value("Is3DAcquisition", bool))
        writer.add_boolean_element("isCalibration", metadata.is_calibration())
        writer.add_boolean_element("isAssetCalibration", processing.value("AssetCalibration", bool))

        writer.add_element("SliceCount", processing.value("NumSlices", int))
        writer.add_element("ChannelCount", processing.value("NumChannels", int))

        series = _require(metadata.dicom_series(), "DICOM series")
        series_module = _require(series.general_module, "series module")
        writer.start_element("Series")
        writer.add_element("Number", processing.value("SeriesNumber", int))
        writer.add_element("UID", _text(series_module, "SeriesInstanceUID"))
        description = _text(series_module, "SeriesDescription")
        if not description:
            logger.warning("Series description is empty")
        writer.add_element("Description", description)
        writer.end_element()

        study = _require(series.study, "DICOM study")
        study_module = _require(study.general_module, "study module")
        writer.start_element("Study")
        writer.add_element("Number", processing.value("ExamNumber", UnsignedInt))
        writer.add_element("UID", _text(study_module, "StudyInstanceUID"))
        writer.end_element()

        patient = _require(study.patient, "DICOM patient")
        patient_module = _require(patient.general_module, "patient module")
        writer.start_element("Patient")
        writer.add_element("Name", _text(patient_module, "PatientName"))
        writer.add_element("ID", _text(patient_module, "PatientID"))
        writer.end_element()

        equipment = _require(series.equipment, "DICOM equipment")
        equipment_module = _require(equipment.general_module, "equipment module")
        writer.start_element("Equipment")
        writer.add_element("Manufacturer", _text(equipment_module, "Manufacturer"))
        writer.end_element()

        writer.add_element("CoilConfigUID", processing.value("CoilConfigUID", UnsignedInt))

        # Timing is only exposed through an image module, so build one for a
        # placeholder image at slice 0.
        slice_table = processing.value_strict("SliceTable", SliceInfoTable)
        corners = ImageCorners(slice_table.acquired_slice_corners(0), slice_table.slice_orientation(0))
        placeholder = np.zeros(PLACEHOLDER_IMAGE_SHAPE, dtype=np.uint16)
        image_module = _require(metadata.dicom_image(placeholder, 0, corners, series), "image module")
        writer.start_element("Image")
        writer.add_element("EchoTime", _text(image_module, "EchoTime"))
        writer.add_element("RepetitionTime", _text(image_module, "RepetitionTime"))

        if metadata.is_epi():
            logger.info("EPI data detected, adding EPI parameters")
            _add_epi_parameters(writer, metadata, processing, kind, scan_archive)

        root = writer.end_document()
    except HeaderGenerationError:
        raise
    except Exception as e:
        logger.error(f"Exception caught during XML conversion: {e}")
        raise HeaderGenerationError(f"Failed to generate GE header: {e}") from e

    logger.info("Completed header XML generation")
    return root


def _add_epi_parameters(writer: HeaderWriter, metadata: MetadataHandle,
                        processing: ProcessingParameters, kind: RawContainerKind,
                        scan_archive: Optional[ScanArchiveHandle]) -> None:
    if kind is not RawContainerKind.SCAN_ARCHIVE:
        raise UnsupportedCombinationError(
            f"EPI header parameters need a ScanArchive; {kind.value} containers are not supported"
        )
    if scan_archive is None:
        raise HeaderGenerationError("EPI header parameters need the ScanArchive handle")

    epi = metadata.epi_processing_parameters()
    storage = scan_archive.archive_storage()

    extra_top = epi.value("ExtraFramesTop", int)
    extra_bottom = epi.value("ExtraFramesBottom", int)
    ref_views = extra_top + extra_bottom

    # Archived EPI interleaves one control packet with each volume's slices.
    num_volumes = storage.available_control_count // (processing.value("NumSlices", int) + 1)

    writer.start_element("epiParameters")
    writer.add_boolean_element("isEpiRefScanIntegrated", epi.value("IntegratedReferenceScan", bool))
    writer.add_boolean_element("MultibandEnabled", epi.value_strict("MultibandEnabled", bool))
    writer.add_element("ExtraFramesTop", extra_top)
    writer.add_element("AcquiredYRes", epi.value("AcquiredYRes", int))
    writer.add_element("ExtraFramesBottom", extra_bottom)
    writer.add_element("NumRefViews", ref_views)
    writer.add_element("num_volumes", num_volumes)
    writer.end_element()


def header_to_string(root: etree._Element) -> str:
    """Serialize a header tree to UTF-8 XML text with a declaration."""
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8", pretty_print=True).decode("utf-8")
