"""
AquaWatch: household water-usage monitoring.

Classifies flow/pressure readings as theft, leak, blockage or normal usage.
"""

__version__ = "1.0.0"
