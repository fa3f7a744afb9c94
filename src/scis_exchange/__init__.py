"""SCIS Exchange: consent-gated clinical data sharing between hospitals"""

__version__ = "1.0.0"
