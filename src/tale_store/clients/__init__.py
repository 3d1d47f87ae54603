"""API clients for external metadata services."""

from tale_store.clients.ncbi import NcbiClient

__all__ = ["NcbiClient"]
