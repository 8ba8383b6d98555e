"""Guidebook outfitter booking backend."""
