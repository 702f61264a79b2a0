"""Upstream API clients used by the addon service."""
