"""
Small helpers shared by fetchers, the ingestor and the stores.
"""
