"""
Relay Service Provisioner

Creates a user's relay in two phases:

1. start: validate, allocate a port, start the container
2. record: write the service onto the user with a conditional update

If recording does not land, the rollback step removes the container that
phase one started. Removal is best effort: its failure is logged and the
caller still sees the PersistenceError.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from models import USER_STATUS_ACTIVE
from services.port_allocator import PortAllocator
from services.provisioning_errors import (
    AlreadyProvisionedError,
    InvalidConfigurationError,
    PersistenceError,
    ProvisioningError,
    UserNotFoundError,
)
from services.relay_catalog import MethodCatalog, ServiceDescriptor
from services.relay_container_manager import ContainerResult, ContainerRuntimeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvisionResult:
    """Successful create-service outcome, ready for display"""
    descriptor: ServiceDescriptor
    package_limit: int
    host: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.descriptor.container_id,
            "port": self.descriptor.port,
            "password": self.descriptor.password,
            "method": self.descriptor.method,
            "type": self.descriptor.service_type,
            "package_limit": self.package_limit,
            "host": self.host,
        }


class ServiceProvisioner:
    """Orchestrates relay creation for a single user"""

    def __init__(self, catalog: MethodCatalog, port_allocator: PortAllocator, runtime, store, host: str):
        """
        Args:
            catalog: Permitted service types and methods
            port_allocator: Port picker for the relay range
            runtime: Container runtime (create_and_start / remove)
            store: User persistence (get_user / list_used_ports / conditional_update)
            host: Public relay host shown to users
        """
        self.catalog = catalog
        self.port_allocator = port_allocator
        self.runtime = runtime
        self.store = store
        self.host = host

    def create_service(self, user_id: int, service_type: str, method: str) -> ProvisionResult:
        """
        Provision the user's relay

        Raises:
            InvalidConfigurationError: Unknown type or method (nothing touched)
            UserNotFoundError: No such user
            AlreadyProvisionedError: User already owns a relay
            NoAvailablePortError: Port range exhausted
            ProvisioningError: Container could not be started
            PersistenceError: Store unreachable, or container started but could not be recorded (container removed)
        """
        self.validate(service_type, method)

        user = self._load_user(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        if user.service_state.provisioned:
            raise AlreadyProvisionedError(f"User {user_id} already has service {user.service_id}")

        # Phase 1: start
        port = self._allocate_port()
        started = self._start_relay(user.username, service_type, method, port)

        # Phase 2: record
        descriptor = ServiceDescriptor(
            service_type=service_type,
            port=started.port,
            password=started.password,
            method=method,
            container_id=started.container_id,
            host=self.host,
        )
        committed, reason = self._record_relay(user_id, descriptor)
        if not committed:
            self._rollback_relay(started)
            raise PersistenceError(reason)

        logger.info(f"{service_type} service {started.container_id} created for user {user_id} on port {started.port}")
        return ProvisionResult(descriptor=descriptor, package_limit=user.package_limit, host=self.host)

    def validate(self, service_type: str, method: str) -> None:
        if not self.catalog.has_type(service_type):
            raise InvalidConfigurationError(f"Unknown service type {service_type!r}")
        if not self.catalog.allows(service_type, method):
            raise InvalidConfigurationError(f"Method {method!r} is not allowed for {service_type}")

    def _load_user(self, user_id: int):
        try:
            return self.store.get_user(user_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load user {user_id}: {e}")

    def _allocate_port(self) -> int:
        try:
            used_ports = self.store.list_used_ports()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not list used ports: {e}")
        return self.port_allocator.allocate_port(used_ports)

    def _start_relay(self, username: str, service_type: str, method: str, port: int) -> ContainerResult:
        try:
            return self.runtime.create_and_start(service_type, username, method, "", port)
        except ContainerRuntimeError as e:
            logger.error(f"Create {service_type} service error: {e}")
            raise ProvisioningError(str(e))

    def _record_relay(self, user_id: int, descriptor: ServiceDescriptor) -> Tuple[bool, Optional[str]]:
        """Conditional update of the user row; returns (committed, failure reason)"""
        fields = {
            "status": USER_STATUS_ACTIVE,
            "service_id": descriptor.container_id,
            "service_port": descriptor.port,
            "service_pwd": descriptor.password,
            "service_method": descriptor.method,
            "service_type": descriptor.service_type,
            "service_traffic_bytes": 0,
        }
        try:
            affected = self.store.conditional_update(user_id, fields)
        except SQLAlchemyError as e:
            logger.error(f"Update user info error: {e}")
            return False, f"Update user {user_id} failed: {e}"

        if affected == 0:
            logger.warning(f"User {user_id} was provisioned or removed concurrently")
            return False, f"User {user_id} was not updated"

        return True, None

    def _rollback_relay(self, started: ContainerResult) -> None:
        logger.warning(f"Removing container {started.container_id} after failed update")
        try:
            self.runtime.remove(started.container_id)
        except Exception as e:
            logger.error(f"Failed to remove container {started.container_id}: {e}", exc_info=True)
