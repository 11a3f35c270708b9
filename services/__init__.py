"""
services/ - Business Logic Layer
================================
Bulk synchronization of in-memory records with their stored rows.
"""
