"""
Core authentication and authorization engine for Secure Login.
"""
