"""
Clients and helpers used by the HTTP handlers.
"""
