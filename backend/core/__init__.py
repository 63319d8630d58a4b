"""
Core Django project package.

Hosts settings, the per-service URL confs, the shared error taxonomy and
request logging used by the storage, analysis and gateway services.
"""
