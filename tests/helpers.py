"""Builders shared by the histmap tests."""

from histmap.model import ExtendedFeature, FeatureAttribute, FeatureType


class ListSource:
    """Data source backed by plain lists."""

    def __init__(self, features=(), properties=(), attributes=(), settings=()):
        self.features = list(features)
        self.properties = list(properties)
        self.attributes = list(attributes)
        self.settings = list(settings)

    def get_features(self):
        return self.features

    def get_features_properties(self):
        return self.properties

    def get_features_attributes(self):
        return self.attributes

    def get_features_settings(self):
        return self.settings

    def get_map_settings(self):
        return None


def line(fid, coords=((0.0, 0.0), (1.0, 0.0))):
    return ExtendedFeature(FeatureType.LINESTRING, fid, [list(c) for c in coords])


def point(fid, lon=0.0, lat=0.0):
    return ExtendedFeature(FeatureType.POINT, fid, [lon, lat])


def attr(fid, name, value, year_from=None, year_to=None, ft=FeatureType.LINESTRING):
    return FeatureAttribute(ft, fid, name, value, from_year=year_from, to_year=year_to)
