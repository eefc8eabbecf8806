"""Core configuration for the region service."""
