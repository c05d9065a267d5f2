"""
Port Allocation Service

Picks host ports for relay containers out of a configured range.
The database is the source of truth for which ports are taken; callers pass
that set in, so allocation itself has no side effects.
"""

import socket
import logging
from typing import Iterable, Set

from services.provisioning_errors import NoAvailablePortError

logger = logging.getLogger(__name__)


class PortAllocator:
    """Allocates relay ports, lowest free port first"""

    DEFAULT_START_PORT = 5001
    DEFAULT_END_PORT = 6000

    def __init__(
        self,
        start_port: int = DEFAULT_START_PORT,
        end_port: int = DEFAULT_END_PORT,
        check_bindable: bool = False
    ):
        """
        Initialize port allocator

        Args:
            start_port: First port in allocation range
            end_port: End of allocation range (exclusive)
            check_bindable: Also skip ports the host cannot bind right now
        """
        if start_port > end_port:
            raise ValueError(f"Invalid port range {start_port}-{end_port}")

        self.start_port = start_port
        self.end_port = end_port
        self.port_range = range(start_port, end_port)
        self.check_bindable = check_bindable

    def allocate_port(self, used_ports: Iterable[int]) -> int:
        """
        Find an available port

        Args:
            used_ports: Ports already assigned to other relays

        Returns:
            int: Lowest port in range not in used_ports

        Raises:
            NoAvailablePortError: If no ports available in range
        """
        used = {port for port in used_ports if port}

        for port in self.port_range:
            if port in used:
                continue

            if self.check_bindable and not self._is_port_available(port):
                logger.debug(f"Port {port} in use by system")
                continue

            logger.info(f"Allocated port {port}")
            return port

        raise NoAvailablePortError(
            f"No available ports in range {self.start_port}-{self.end_port}"
        )

    def _is_port_available(self, port: int) -> bool:
        """
        Test if port is available for binding on all interfaces

        Args:
            port: Port number to test

        Returns:
            True if port can be bound, False otherwise
        """
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(('0.0.0.0', port))
            sock.close()
            return True
        except OSError as e:
            logger.debug(f"Port {port} not available: {e}")
            return False

    def get_port_usage_stats(self, used_ports: Iterable[int]) -> dict:
        """
        Get statistics about port allocation

        Args:
            used_ports: Ports already assigned to relays

        Returns:
            Dict with usage statistics
        """
        used: Set[int] = {port for port in used_ports if port in self.port_range}
        total_ports = len(self.port_range)
        used_count = len(used)
        usage_percent = (used_count / total_ports) * 100 if total_ports > 0 else 0

        return {
            'start_port': self.start_port,
            'end_port': self.end_port,
            'total_ports': total_ports,
            'used_ports': used_count,
            'available_ports': total_ports - used_count,
            'usage_percent': round(usage_percent, 2),
            'warning': usage_percent > 80,  # Warn when >80% used
        }
