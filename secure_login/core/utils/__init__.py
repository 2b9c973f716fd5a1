"""
Utility helpers shared by the core services and views.
"""
