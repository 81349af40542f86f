"""
Domain models for Library Service.
"""
