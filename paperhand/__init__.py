"""
Paper-hand settlement engine.

A bonding-curve exchange whose sells below weighted-average cost basis
forfeit a share of proceeds to a treasury.
"""

__version__ = "0.1.0"
