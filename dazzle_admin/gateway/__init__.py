"""Ports and adapters onto the hosted backend."""

from .ports import BackendError, BackendGatewayProtocol, Principal, UserConnectionProtocol
from .memory import InMemoryBackend, InMemoryConnection
from .supabase_gateway import SupabaseConnection, SupabaseGateway

__all__ = [
    "BackendError",
    "BackendGatewayProtocol",
    "InMemoryBackend",
    "InMemoryConnection",
    "Principal",
    "SupabaseConnection",
    "SupabaseGateway",
    "UserConnectionProtocol",
]
