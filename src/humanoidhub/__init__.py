"""Humanoid Hub: catalog and upload backend for humanoid-robotics models."""

__version__ = "0.1.0"
