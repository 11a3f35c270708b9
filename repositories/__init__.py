"""
repositories/ - Data Access Layer
==================================
Repositories turn declarative filters into SQL for a model's table and return
raw rows (or model instances) to the service layer.
"""
