"""
Assets module - IP assets, creators, ownership and usage metrics.

The licensing core reads these records; it never changes ownership.
"""
