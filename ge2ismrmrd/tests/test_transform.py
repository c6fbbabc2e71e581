"""
Tests for the XSLT transform step.
"""

import pytest
from lxml import etree

from ge2ismrmrd.errors import StylesheetNotConfiguredError, TransformError
from ge2ismrmrd.transform import TransformEngine, render

IDENTITY_STYLESHEET = """<?xml version="1.0" encoding="UTF-8"?>
<xsl:stylesheet version="1.0" xmlns:xsl="http://www.w3.org/1999/XSL/Transform">
    <xsl:output method="xml" encoding="UTF-8"/>
    <xsl:template match="/Header">
        <ConvertedHeader><xsl:apply-templates select="@*|node()"/></ConvertedHeader>
    </xsl:template>
    <xsl:template match="@*|node()">
        <xsl:copy><xsl:apply-templates select="@*|node()"/></xsl:copy>
    </xsl:template>
</xsl:stylesheet>
"""

SLICES_STYLESHEET = """<?xml version="1.0" encoding="UTF-8"?>
<xsl:stylesheet version="1.0" xmlns:xsl="http://www.w3.org/1999/XSL/Transform">
    <xsl:output method="xml" encoding="UTF-8"/>
    <xsl:template match="/">
        <slices><xsl:value-of select="Header/SliceCount"/></slices>
    </xsl:template>
</xsl:stylesheet>
"""

ENTITY_HEADER = """<?xml version="1.0"?>
<!DOCTYPE Header [<!ENTITY vendor "GE MEDICAL SYSTEMS">]>
<Header><SliceCount>3</SliceCount><Manufacturer>&vendor;</Manufacturer></Header>
"""

VENDOR_STYLESHEET = """<?xml version="1.0" encoding="UTF-8"?>
<xsl:stylesheet version="1.0" xmlns:xsl="http://www.w3.org/1999/XSL/Transform">
    <xsl:template match="/">
        <vendor><xsl:value-of select="Header/Manufacturer"/></vendor>
    </xsl:template>
</xsl:stylesheet>
"""


@pytest.fixture
def header():
    root = etree.Element("Header")
    etree.SubElement(root, "SliceCount").text = "3"
    series = etree.SubElement(root, "Series")
    etree.SubElement(series, "UID").text = "1.2.3"
    return root


class TestRender:

    def test_requires_stylesheet(self, header):
        with pytest.raises(StylesheetNotConfiguredError, match="No stylesheet configured"):
            render(header, None)
        with pytest.raises(StylesheetNotConfiguredError):
            render(header, "")

    def test_identity_keeps_fields(self, header):
        output = render(header, IDENTITY_STYLESHEET)
        result = etree.fromstring(output.encode("utf-8"))

        assert result.tag == "ConvertedHeader"
        assert result.findtext("SliceCount") == "3"
        assert result.findtext("Series/UID") == "1.2.3"

    def test_accepts_serialized_header(self, header):
        text = etree.tostring(header, encoding="UTF-8", xml_declaration=True)
        assert render(text, SLICES_STYLESHEET) == render(header, SLICES_STYLESHEET)

    def test_entities_are_substituted(self):
        output = render(ENTITY_HEADER, VENDOR_STYLESHEET)
        assert etree.fromstring(output.encode("utf-8")).text == "GE MEDICAL SYSTEMS"

    def test_malformed_stylesheet(self, header):
        with pytest.raises(TransformError, match="Failed to parse stylesheet from memory"):
            render(header, "<xsl:stylesheet")

    def test_not_an_xslt_program(self, header):
        with pytest.raises(TransformError, match="Failed to parse XSLT stylesheet"):
            render(header, "<notAStylesheet/>")

    def test_malformed_header(self):
        with pytest.raises(TransformError, match="Failed to parse GE header XML"):
            render("<Header><SliceCount>", SLICES_STYLESHEET)

    def test_empty_header(self):
        with pytest.raises(TransformError, match="Generated GE header is empty"):
            render("", SLICES_STYLESHEET)

    def test_apply_failure(self, header):
        failing = """<xsl:stylesheet version="1.0" xmlns:xsl="http://www.w3.org/1999/XSL/Transform">
            <xsl:template match="/"><xsl:message terminate="yes">stop</xsl:message></xsl:template>
        </xsl:stylesheet>"""
        with pytest.raises(TransformError, match="Error applying stylesheet"):
            render(header, failing)


class TestTransformEngine:

    def test_unset_engine(self, header):
        engine = TransformEngine()
        assert not engine.is_configured
        with pytest.raises(StylesheetNotConfiguredError):
            engine.render(header)

    def test_set_stylesheet_replaces_previous(self, header):
        engine = TransformEngine()
        engine.set_stylesheet(IDENTITY_STYLESHEET)
        engine.set_stylesheet(SLICES_STYLESHEET)

        result = etree.fromstring(engine.render(header).encode("utf-8"))
        assert result.tag == "slices"
        assert result.text == "3"
