"""
HTTP API for triggering and inspecting aggregation.
"""
