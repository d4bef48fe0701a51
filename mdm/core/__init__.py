"""
Core infrastructure: logging and concurrency primitives.
"""
