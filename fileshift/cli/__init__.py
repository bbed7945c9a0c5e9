"""
Command line interface for fileshift.
"""
