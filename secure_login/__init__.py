"""
Secure Login: layered authentication and role-based access control.
"""
