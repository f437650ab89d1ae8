"""Heading-correction and adaptive audio feedback for a handheld sailing compass."""

__version__ = "0.3.0"
