"""
Web interface for the land matching engine.
"""
