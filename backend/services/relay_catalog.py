"""
Relay Method Catalog

Static description of the relay variants the panel can provision (SS, SSR)
and the cipher methods each one accepts, plus the value types that describe
a provisioned relay.

The catalog is built once at startup and handed to the provisioner and the
panel handlers explicitly; nothing here is mutable after construction.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple, Union


SS = "SS"
SSR = "SSR"

SS_METHODS = (
    "aes-256-cfb",
    "aes-128-gcm",
    "aes-192-gcm",
    "aes-256-gcm",
    "chacha20-ietf-poly1305",
)
SSR_METHODS = (
    "aes-256-cfb",
    "aes-256-ctr",
    "chacha20",
    "chacha20-ietf",
)

DEFAULT_SERVICE_TYPE = SS
DEFAULT_METHOD = "aes-256-cfb"


@dataclass(frozen=True)
class MethodCatalog:
    """Immutable mapping of service type -> permitted cipher methods"""

    methods: Mapping[str, Tuple[str, ...]]
    default_type: str = DEFAULT_SERVICE_TYPE
    default_method: str = DEFAULT_METHOD

    def __post_init__(self):
        frozen = {name: tuple(methods) for name, methods in self.methods.items()}
        if self.default_type not in frozen:
            raise ValueError(f"Default service type {self.default_type!r} is not in the catalog")
        if self.default_method not in frozen[self.default_type]:
            raise ValueError(
                f"Default method {self.default_method!r} is not allowed for {self.default_type}"
            )
        object.__setattr__(self, "methods", MappingProxyType(frozen))

    @property
    def service_types(self) -> Tuple[str, ...]:
        return tuple(self.methods.keys())

    def has_type(self, service_type: str) -> bool:
        return service_type in self.methods

    def allows(self, service_type: str, method: str) -> bool:
        return method in self.methods.get(service_type, ())

    def methods_for(self, service_type: str) -> Tuple[str, ...]:
        return self.methods.get(service_type, ())


def build_method_catalog() -> MethodCatalog:
    """Build the catalog served by this deployment"""
    return MethodCatalog(methods={SS: SS_METHODS, SSR: SSR_METHODS})


@dataclass(frozen=True)
class ServiceDescriptor:
    """Everything needed to reach, display or tear down one relay"""

    service_type: str
    port: int
    password: str
    method: str
    container_id: str
    host: str = ""


@dataclass(frozen=True)
class Unprovisioned:
    """User has no relay yet"""

    provisioned: bool = field(default=False, init=False)


@dataclass(frozen=True)
class Provisioned:
    """User owns exactly one relay"""

    descriptor: ServiceDescriptor
    provisioned: bool = field(default=True, init=False)


ServiceState = Union[Unprovisioned, Provisioned]


def service_state_from_fields(
    service_id: Optional[str],
    service_type: Optional[str],
    port: Optional[int],
    password: Optional[str],
    method: Optional[str],
) -> ServiceState:
    """Lift the nullable service columns of a user row into a ServiceState"""
    if not service_id:
        return Unprovisioned()
    return Provisioned(
        ServiceDescriptor(
            service_type=service_type or "",
            port=port or 0,
            password=password or "",
            method=method or "",
            container_id=service_id,
        )
    )
