"""Upstream vision providers."""
