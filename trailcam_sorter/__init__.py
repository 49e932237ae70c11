"""
Trailcam Sorter - Trail camera media triage toolkit

This package sorts trail camera images and videos into directories by image
quality and detected animal, using a locally-hosted or OpenAI-compatible
vision-language model.
"""

__version__ = "0.1.0"
