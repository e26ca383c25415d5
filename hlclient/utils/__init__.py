"""
Logging and retry helpers.
"""
