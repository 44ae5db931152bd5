"""Hadaf Books - small-business bookkeeping with recurring installments."""

__version__ = "1.0.0"
