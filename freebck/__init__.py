"""
freebck - a deduplicating, content-addressed backup engine
"""

__version__ = '0.1.0'
