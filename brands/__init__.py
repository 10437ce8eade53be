"""
Brands module - the licensee side of every grant.

This module handles:
- Brand entity (owner, verification, spend history)
- Brand repository (port)
- Brand infrastructure (Django ORM adapters)
- API keys resolving requests to actors
"""
