"""
yoga: atomic multi-range concentrated-liquidity positions.
"""

__version__ = "0.1.0"
