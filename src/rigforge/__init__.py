"""Skeletal rig to runtime deformation graph translation."""

__version__ = "0.1.0"
