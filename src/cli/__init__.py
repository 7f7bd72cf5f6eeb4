"""
Command line interface for stack utilities.
"""
