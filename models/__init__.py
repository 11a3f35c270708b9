"""
models/ - Domain Layer
======================
The Record base class that application models subclass.
"""
