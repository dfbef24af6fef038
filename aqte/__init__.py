"""AQTE - Adaptive Quant Trading Engine."""

from .core.constants import VERSION

__version__ = VERSION
