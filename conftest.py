"""
Root conftest.py for pytest configuration

Applies markers from test location and registers the domain markers.
"""
from tests.markers import DOMAIN_MARKERS, PRIMARY_MARKERS, apply_auto_markers


def pytest_collection_modifyitems(config, items):
    for item in items:
        apply_auto_markers(item)


def pytest_configure(config):
    """Register primary and domain markers"""
    for marker_name in PRIMARY_MARKERS:
        config.addinivalue_line("markers", f"{marker_name}: {marker_name} tests")
    for marker_name, description in DOMAIN_MARKERS.items():
        config.addinivalue_line("markers", f"{marker_name}: {description}")
