"""
Sync package — AttenWell backend client.

Provides AttenWellClient for session upload, break-time credit,
parent settings and sudden-closure reconciliation.
"""

from sync.api_client import AttenWellClient
from sync.settings import ParentSettings

__all__ = ["AttenWellClient", "ParentSettings"]
