"""Utility modules for Catalog Image Extractor."""
