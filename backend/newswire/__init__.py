"""
Newswire: scheduled multi-source news aggregation.
"""

__version__ = "0.1.0"
