"""
HTTP routers. Thin adapters: resolve identity and Store, call a service.
"""
