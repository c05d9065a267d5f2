"""
Services Module

Relay provisioning: method catalog, port allocation and Docker containers.
"""

from services.port_allocator import PortAllocator
from services.relay_catalog import MethodCatalog, build_method_catalog
from services.relay_container_manager import RelayContainerManager

__all__ = [
    'PortAllocator',
    'MethodCatalog',
    'build_method_catalog',
    'RelayContainerManager',
]
