"""
Licensing policy loader.

Reads the ``LICENSING`` settings dict; absent keys keep their defaults.
"""
from django.conf import settings

from licenses.domain.policy import LicensingPolicy


def get_licensing_policy() -> LicensingPolicy:
    """Build the policy from the current Django settings."""
    return LicensingPolicy.from_mapping(getattr(settings, "LICENSING", None))
