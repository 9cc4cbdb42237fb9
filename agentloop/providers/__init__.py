"""
Providers module - implementations of external boundaries.
"""
