"""
Tests for GERawConverter, the public conversion API.
"""

import pytest
from lxml import etree

from ge2ismrmrd.config import SequenceMapping
from ge2ismrmrd.converter import GERawConverter
from ge2ismrmrd.converters import GenericConverter, NIHepiConverter
from ge2ismrmrd.errors import (
    HeaderGenerationError,
    RawLoadError,
    StylesheetNotConfiguredError,
    UnknownConverterError,
    UnsupportedCombinationError,
)
from ge2ismrmrd.raw import RawContainerKind
from ge2ismrmrd.tests.fixtures.fake_backend import (
    FakeArchive,
    FakeArchiveStorage,
    FakeMetadata,
    FakePfile,
    FakeRawSource,
    make_processing,
)
from ge2ismrmrd.tests.test_transform import IDENTITY_STYLESHEET, SLICES_STYLESHEET

ISMRMRD_NS = {"m": "http://www.ismrm.org/ISMRMRD"}


@pytest.fixture
def raw_source():
    return FakeRawSource()


@pytest.fixture
def pfile_converter(raw_source):
    return GERawConverter("P12345.7", "GenericConverter", raw_source=raw_source, recon_config_name="default")


@pytest.fixture
def epi_archive_source():
    archive = FakeArchive(view_count=2, storage=FakeArchiveStorage(available_control_count=51, frames_per_view=6))
    return FakeRawSource(metadata=FakeMetadata(epi=True), archive=archive)


class TestConstruction:

    def test_pfile_is_loaded_as_pfile(self, raw_source, pfile_converter):
        assert pfile_converter.kind is RawContainerKind.PFILE
        assert raw_source.loaded == [("P12345.7", RawContainerKind.PFILE)]
        assert isinstance(pfile_converter.converter, GenericConverter)

    def test_scan_archive_is_loaded_as_archive(self, raw_source):
        converter = GERawConverter("ScanArchive_001.h5", "GenericConverter", raw_source=raw_source)
        assert converter.kind is RawContainerKind.SCAN_ARCHIVE
        assert raw_source.loaded == [("ScanArchive_001.h5", RawContainerKind.SCAN_ARCHIVE)]

    def test_unknown_class_name_aborts_construction(self, raw_source):
        with pytest.raises(UnknownConverterError, match="NotARealConverter"):
            GERawConverter("P12345.7", "NotARealConverter", raw_source=raw_source)

    def test_load_failure_is_wrapped(self):
        source = FakeRawSource(error=OSError("truncated header"))
        with pytest.raises(RawLoadError, match="truncated header") as excinfo:
            GERawConverter("P12345.7", "GenericConverter", raw_source=source)
        assert isinstance(excinfo.value.__cause__, OSError)

    def test_epi_converter_uses_reference_views(self, epi_archive_source):
        converter = GERawConverter("epi.h5", "NIHepiConverter", raw_source=epi_archive_source)
        assert isinstance(converter.converter, NIHepiConverter)
        assert converter.converter.ref_views == 5

    def test_from_mapping(self, raw_source, tmp_path):
        stylesheet = tmp_path / "slices.xsl"
        stylesheet.write_text(SLICES_STYLESHEET)
        mapping = SequenceMapping(psdname="fgre", libraryPath="", className="NIH2dfastConverter",
                                  stylesheet=str(stylesheet), reconConfigName="fgre_recon")

        converter = GERawConverter.from_mapping("P00001.7", mapping, raw_source)

        assert converter.get_recon_config_name() == "fgre_recon"
        assert etree.fromstring(converter.get_ismrmrd_xml_header().encode("utf-8")).text == "5"


class TestHeader:

    def test_requires_stylesheet(self, pfile_converter, caplog):
        with pytest.raises(StylesheetNotConfiguredError, match="No stylesheet configured"):
            pfile_converter.get_ismrmrd_xml_header()
        assert "No stylesheet configured" in caplog.text

    def test_header_is_idempotent(self, pfile_converter):
        pfile_converter.use_stylesheet_string(IDENTITY_STYLESHEET)
        assert pfile_converter.get_ismrmrd_xml_header() == pfile_converter.get_ismrmrd_xml_header()

    def test_second_stylesheet_replaces_first(self, pfile_converter):
        pfile_converter.use_stylesheet_string(IDENTITY_STYLESHEET)
        pfile_converter.use_stylesheet_string(SLICES_STYLESHEET)

        result = etree.fromstring(pfile_converter.get_ismrmrd_xml_header().encode("utf-8"))
        assert result.tag == "slices"

    def test_stylesheet_from_file(self, pfile_converter, tmp_path):
        path = tmp_path / "identity.xsl"
        path.write_text(IDENTITY_STYLESHEET)
        pfile_converter.use_stylesheet_filename(str(path))

        result = etree.fromstring(pfile_converter.get_ismrmrd_xml_header().encode("utf-8"))
        assert result.tag == "ConvertedHeader"

    def test_stylesheet_file_uses_declared_encoding(self, pfile_converter, tmp_path):
        latin1_stylesheet = """<?xml version="1.0" encoding="ISO-8859-1"?>
<xsl:stylesheet version="1.0" xmlns:xsl="http://www.w3.org/1999/XSL/Transform">
    <xsl:output method="xml" encoding="UTF-8"/>
    <xsl:template match="/"><site>Hôpital</site></xsl:template>
</xsl:stylesheet>
"""
        path = tmp_path / "latin1.xsl"
        path.write_bytes(latin1_stylesheet.encode("latin-1"))
        pfile_converter.use_stylesheet_filename(str(path))

        result = etree.fromstring(pfile_converter.get_ismrmrd_xml_header().encode("utf-8"))
        assert result.text == "Hôpital"

    def test_identity_roundtrip_keeps_fixture_values(self, pfile_converter):
        pfile_converter.use_stylesheet_string(IDENTITY_STYLESHEET)
        result = etree.fromstring(pfile_converter.get_ismrmrd_xml_header().encode("utf-8"))

        assert result.findtext("SliceCount") == "5"
        assert result.findtext("ChannelCount") == "8"
        assert result.findtext("Series/Number") == "4"
        assert result.findtext("Series/Description") == "Ax T1 FSPGR"
        assert result.findtext("Study/Number") == "1234"
        assert result.findtext("Patient/Name") == "Doe^Jane"
        assert result.findtext("Patient/ID") == "NIH0001"
        assert result.findtext("Equipment/Manufacturer") == "GE MEDICAL SYSTEMS"
        assert result.findtext("CoilConfigUID") == "77"
        assert result.findtext("Image/EchoTime") == "30"
        assert result.findtext("Image/RepetitionTime") == "2000"

    def test_bundled_stylesheet(self, pfile_converter):
        pfile_converter.use_bundled_stylesheet("default.xsl")
        result = etree.fromstring(pfile_converter.get_ismrmrd_xml_header().encode("utf-8"))

        assert etree.QName(result).localname == "ismrmrdHeader"
        assert result.findtext("m:subjectInformation/m:patientName", namespaces=ISMRMRD_NS) == "Doe^Jane"
        assert result.findtext("m:acquisitionSystemInformation/m:receiverChannels", namespaces=ISMRMRD_NS) == "8"
        assert result.findtext("m:sequenceParameters/m:TR", namespaces=ISMRMRD_NS) == "2000"

    def test_bundled_stylesheet_with_epi(self, epi_archive_source):
        converter = GERawConverter("epi.h5", "NIHepiConverter", raw_source=epi_archive_source)
        converter.use_bundled_stylesheet("default.xsl")
        result = etree.fromstring(converter.get_ismrmrd_xml_header().encode("utf-8"))

        params = {p.findtext("m:name", namespaces=ISMRMRD_NS): p.findtext("m:value", namespaces=ISMRMRD_NS)
                  for p in result.iterfind("m:userParameters/m:userParameterLong", namespaces=ISMRMRD_NS)}
        assert params["NumRefViews"] == "5"
        assert params["num_volumes"] == "8"
        assert params["isEpiRefScanIntegrated"] == "1"
        assert result.findtext("m:encoding/m:encodingLimits/m:repetition/m:maximum", namespaces=ISMRMRD_NS) == "7"

    def test_epi_pfile_is_reported(self, pfile_converter):
        pfile_converter.raw.metadata.epi = True
        pfile_converter.use_stylesheet_string(IDENTITY_STYLESHEET)
        with pytest.raises(UnsupportedCombinationError):
            pfile_converter.get_ismrmrd_xml_header()

    def test_build_failure_is_reraised(self, tmp_path):
        source = FakeRawSource(processing=make_processing(SliceTable=None))
        converter = GERawConverter("P12345.7", "GenericConverter", raw_source=source)
        converter.use_stylesheet_string(IDENTITY_STYLESHEET)
        with pytest.raises(HeaderGenerationError, match="SliceTable"):
            converter.get_ismrmrd_xml_header()


class TestAcquisitions:

    def test_pfile_dispatch(self, raw_source):
        raw_source.pfile = FakePfile(view_count=3, slice_count=2)
        converter = GERawConverter("P12345.7", "GenericConverter", raw_source=raw_source)

        assert converter.num_views == 3
        assert len(converter.get_acquisitions(1)) == 2

    def test_archive_dispatch(self, epi_archive_source):
        converter = GERawConverter("epi.h5", "NIHepiConverter", raw_source=epi_archive_source)

        assert converter.num_views == 2
        acquisitions = converter.get_acquisitions(0)
        assert len(acquisitions) == 6

    def test_negative_view_rejected(self, pfile_converter):
        with pytest.raises(ValueError):
            pfile_converter.get_acquisitions(-1)

    def test_recon_config_name(self, pfile_converter):
        assert pfile_converter.get_recon_config_name() == "default"
