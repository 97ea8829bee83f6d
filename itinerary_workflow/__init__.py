"""Workflow session state and progress streaming for the itinerary generation pipeline."""

__version__ = "0.1.0"
