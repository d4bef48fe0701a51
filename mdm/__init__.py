"""
MDM governance core.

Hierarchical reference data, dynamic attributes and a maker-checker
approval workflow gated by configurable approval rules.
"""

__version__ = "0.1.0"
