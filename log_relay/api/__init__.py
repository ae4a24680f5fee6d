"""
HTTP trigger surface for the log relay.
"""
