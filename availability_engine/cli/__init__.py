"""
Command line interface for the availability engine.
"""
