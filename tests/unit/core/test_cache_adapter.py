"""
Unit tests for the Django cache adapter.
"""
from unittest.mock import patch

import pytest

from core.infrastructure.cache_adapters import DjangoCacheAdapter


class BrokenBackend:
    def get(self, key):
        raise ConnectionError("redis down")

    def set(self, key, value, timeout=None):
        raise ConnectionError("redis down")

    def delete(self, key):
        raise ConnectionError("redis down")


@pytest.mark.asyncio
class TestDjangoCacheAdapter:
    """Tests for DjangoCacheAdapter over the local-memory test cache."""

    async def test_set_get_delete(self):
        """Test values round-trip and can be dropped."""
        adapter = DjangoCacheAdapter()
        await adapter.set("preview:asset-1", {"active_licenses": 2}, timeout=60)

        assert await adapter.get("preview:asset-1") == {"active_licenses": 2}
        await adapter.delete("preview:asset-1")
        assert await adapter.get("preview:asset-1") is None

    async def test_backend_errors_are_misses(self):
        """Test a failing backend behaves as a miss instead of raising."""
        adapter = DjangoCacheAdapter()
        with patch("core.infrastructure.cache_adapters.cache", BrokenBackend()):
            assert await adapter.get("preview:asset-1") is None
            await adapter.set("preview:asset-1", {}, timeout=60)
            await adapter.delete("preview:asset-1")
