"""
Per-service URL confs. settings.SERVICE_ROLE selects one as ROOT_URLCONF.
"""
