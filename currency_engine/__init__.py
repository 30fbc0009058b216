"""
Currency Engine - Source Package

Multi-currency rate acquisition and execution engine for a personal
finance tracker.

DESIGN PRINCIPLES:
1. Decimal end to end, never float
2. Fail early, fail visibly (no silent rate of 1)
3. Stale rates are flagged, never blocked
4. Every executed conversion is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Personal Finance Tracker Team"
