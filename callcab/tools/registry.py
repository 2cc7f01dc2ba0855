"""
Backend registry: memory stores and CRM clients by configured name.

The orchestrator never imports a concrete backend. Deployments pick one
with MEMORY_BACKEND / CRM_BACKEND and the registry builds it from config.
"""

import logging
from typing import Callable

from callcab.config import AppConfig
from callcab.tools.crm_client import CrmClient, IcabbiClient, InMemoryCrmClient
from callcab.tools.memory_store import InMemoryMemoryStore, MemoryStore, RedisMemoryStore

logger = logging.getLogger(__name__)

MemoryStoreFactory = Callable[[AppConfig], MemoryStore]
CrmClientFactory = Callable[[AppConfig], CrmClient]

_MEMORY_STORES: dict[str, MemoryStoreFactory] = {}
_CRM_CLIENTS: dict[str, CrmClientFactory] = {}


def register_memory_store(name: str, factory: MemoryStoreFactory) -> None:
    """Register a memory store factory by name."""
    _MEMORY_STORES[name] = factory
    logger.debug("Memory store registered: %s", name)


def register_crm_client(name: str, factory: CrmClientFactory) -> None:
    """Register a CRM client factory by name."""
    _CRM_CLIENTS[name] = factory
    logger.debug("CRM client registered: %s", name)


def create_memory_store(name: str, config: AppConfig) -> MemoryStore:
    """Build the named memory store.

    Raises:
        KeyError: If the name is not registered.
    """
    if name not in _MEMORY_STORES:
        raise KeyError(
            f"Memory store '{name}' not registered. Available: {list(_MEMORY_STORES)}"
        )
    return _MEMORY_STORES[name](config)


def create_crm_client(name: str, config: AppConfig) -> CrmClient:
    """Build the named CRM client.

    Raises:
        KeyError: If the name is not registered.
    """
    if name not in _CRM_CLIENTS:
        raise KeyError(f"CRM client '{name}' not registered. Available: {list(_CRM_CLIENTS)}")
    return _CRM_CLIENTS[name](config)


def get_registered_backends() -> dict[str, list[str]]:
    return {"memory": list(_MEMORY_STORES), "crm": list(_CRM_CLIENTS)}


def _auto_register() -> None:
    """Register the built-in backends. Called once at import time."""
    register_memory_store("redis", lambda config: RedisMemoryStore.from_url(config.memory.redis_url))
    register_memory_store("memory", lambda config: InMemoryMemoryStore())
    register_crm_client("icabbi", lambda config: IcabbiClient.from_config(config.dispatch))
    register_crm_client("memory", lambda config: InMemoryCrmClient())


_auto_register()
