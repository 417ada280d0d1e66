"""
Paytrack — device & payment tracking API on top of a WordPress database.
"""

__version__ = "1.0.0"
