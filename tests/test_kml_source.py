"""Tests for the KML adapter."""

from histmap.core.result import Status
from histmap.io.kml_source import KMLFeaturesSource, _parse_coords
from histmap.model import FeatureType

KML = """<?xml version="1.0" encoding="UTF-8"?>
<kml xmlns="http://www.opengis.net/kml/2.2">
  <Document>
    <Placemark>
      <name>Mill</name>
      <description>kind=mill;built=1820</description>
      <Point><coordinates>8.5,47.3,410</coordinates></Point>
    </Placemark>
    <Placemark>
      <name>Canal</name>
      <ExtendedData><Data name="id"><value>canal-1</value></Data></ExtendedData>
      <LineString><coordinates>8.5,47.3 8.6,47.35</coordinates></LineString>
    </Placemark>
    <Placemark>
      <name>Yard</name>
      <description>id=yard-7;owner=town;broken</description>
      <Polygon>
        <outerBoundaryIs><LinearRing><coordinates>0,0 4,0 4,4 0,0</coordinates></LinearRing></outerBoundaryIs>
        <innerBoundaryIs><LinearRing><coordinates>1,1 2,1 2,2 1,1</coordinates></LinearRing></innerBoundaryIs>
      </Polygon>
    </Placemark>
    <Placemark>
      <name>Both</name>
      <MultiGeometry><Point><coordinates>1,1</coordinates></Point></MultiGeometry>
    </Placemark>
  </Document>
</kml>
"""


class TestKMLFeaturesSource:
    def setup_method(self):
        self.source = KMLFeaturesSource(KML)

    def test_features(self):
        found = [(f.feature_type, f.id) for f in self.source.get_features()]
        assert found == [
            (FeatureType.POINT, "Mill"),
            (FeatureType.LINESTRING, "canal-1"),
            (FeatureType.POLYGON, "yard-7"),
        ]

    def test_altitude_dropped(self):
        assert self.source.get_features()[0].coordinates == [8.5, 47.3]

    def test_polygon_inner_ring(self):
        yard = self.source.get_features()[2]
        assert len(yard.coordinates) == 2

    def test_description_properties(self):
        props = {(p.feature_id, p.property_name): p.property_value for p in self.source.get_features_properties()}
        assert props == {("Mill", "kind"): "mill", ("Mill", "built"): "1820", ("yard-7", "owner"): "town"}

    def test_warnings(self):
        result = self.source.process_result
        assert result.status == Status.WARN
        warnings = result.warnings()
        assert any("broken" in w for w in warnings)
        assert any("MultiGeometry" in w for w in warnings)

    def test_no_attributes_or_settings(self):
        assert self.source.get_features_attributes() == []
        assert self.source.get_features_settings() == []

    def test_not_kml(self):
        source = KMLFeaturesSource("<gpx></gpx>")
        assert source.process_result.status == Status.ERROR

    def test_broken_xml(self):
        source = KMLFeaturesSource("<kml><Placemark>")
        assert source.process_result.status == Status.ERROR
        assert source.get_features() == []


def test_parse_coords_skips_out_of_range_and_garbage():
    assert _parse_coords("1,2 x,y 200,10 3,4,5 7") == [[1.0, 2.0], [3.0, 4.0]]
