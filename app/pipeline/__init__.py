"""Offline pipeline that builds the catalog, facet and match-report files."""
