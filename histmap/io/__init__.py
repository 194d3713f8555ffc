"""Readers and writers for map data."""
