"""Shared building blocks used across the pipeline stages."""
