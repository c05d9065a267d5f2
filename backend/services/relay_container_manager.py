"""
Docker Container Manager for relay services

Creates, stops and removes the SS/SSR containers backing each user's relay,
and reads their network counters for quota accounting.
"""

import re
import time
import secrets
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import docker
import requests

import settings
from services.relay_catalog import SS, SSR

logger = logging.getLogger(__name__)

# requests errors surface when the daemon socket drops after startup
DOCKER_ERRORS = (docker.errors.DockerException, requests.exceptions.RequestException)


class ContainerRuntimeError(Exception):
    """Docker refused or failed a relay container operation"""
    pass


@dataclass(frozen=True)
class ContainerResult:
    """What the runtime hands back after starting a relay"""
    container_id: str
    port: int
    password: str


@dataclass(frozen=True)
class RelayImage:
    """How to launch one relay variant"""
    image: str
    internal_port: int

    def command(self, method: str, password: str) -> Optional[List[str]]:
        return None

    def environment(self, method: str, password: str) -> Dict[str, str]:
        return {}


class ShadowsocksImage(RelayImage):
    """shadowsocks-libev reads its settings from the environment"""

    def environment(self, method: str, password: str) -> Dict[str, str]:
        return {
            "PASSWORD": password,
            "METHOD": method,
            "SERVER_PORT": str(self.internal_port),
        }


class ShadowsocksRImage(RelayImage):
    """shadowsocksr takes its settings on the command line"""

    def command(self, method: str, password: str) -> Optional[List[str]]:
        return [
            "python", "server.py",
            "-p", str(self.internal_port),
            "-k", password,
            "-m", method,
            "-O", "origin",
            "-o", "plain",
        ]


def default_relay_images() -> Dict[str, RelayImage]:
    return {
        SS: ShadowsocksImage(image=settings.SS_IMAGE, internal_port=8388),
        SSR: ShadowsocksRImage(image=settings.SSR_IMAGE, internal_port=8388),
    }


def generate_service_password(length: int = 12) -> str:
    """Random relay password, URL-safe so it survives share links"""
    return secrets.token_urlsafe(length)[:length]


class RelayContainerManager:
    """Manages Docker containers for relay services"""

    CONTAINER_PREFIX = settings.CONTAINER_PREFIX
    STOP_TIMEOUT = 10  # seconds

    def __init__(self, client: Optional[docker.DockerClient] = None, images: Optional[Dict[str, RelayImage]] = None):
        """
        Initialize Docker client

        Args:
            client: Pre-built Docker client (defaults to docker.from_env())
            images: Image table per service type
        """
        self.images = images or default_relay_images()

        if client is not None:
            self.docker = client
            return

        try:
            self.docker = docker.from_env()
            logger.info("Docker client initialized successfully")
        except docker.errors.DockerException as e:
            logger.error(f"Failed to initialize Docker client: {e}")
            raise ContainerRuntimeError(
                f"Docker is not available or not running. Error: {e}"
            )

    def container_name(self, service_type: str, name: str) -> str:
        """Unique, Docker-safe container name for a user's relay"""
        slug = re.sub(r'[^a-z0-9_.-]', '', name.lower()) or "user"
        return f"{self.CONTAINER_PREFIX}{service_type.lower()}-{slug}_{int(time.time())}"

    def create_and_start(
        self,
        service_type: str,
        name: str,
        method: str,
        password: str,
        port: int
    ) -> ContainerResult:
        """
        Create and start a relay container

        Args:
            service_type: "SS" or "SSR"
            name: Owner name, used to build the container name
            method: Cipher method
            password: Relay password; generated when empty
            port: Host port to publish the relay on

        Returns:
            ContainerResult with the container id, port and password

        Raises:
            ContainerRuntimeError: If the image is unknown or Docker fails
        """
        relay_image = self.images.get(service_type)
        if relay_image is None:
            raise ContainerRuntimeError(f"No image configured for service type {service_type}")

        password = password or generate_service_password()
        container_name = self.container_name(service_type, name)

        logger.info(f"Starting {service_type} container {container_name} on port {port}")

        internal = relay_image.internal_port
        create_kwargs = dict(
            name=container_name,
            command=relay_image.command(method, password),
            environment=relay_image.environment(method, password),
            ports={f'{internal}/tcp': port, f'{internal}/udp': port},
            restart_policy={"Name": "unless-stopped"},
        )
        try:
            try:
                container = self.docker.containers.create(relay_image.image, **create_kwargs)
            except docker.errors.ImageNotFound:
                logger.info(f"Pulling image {relay_image.image}")
                self.docker.images.pull(relay_image.image)
                container = self.docker.containers.create(relay_image.image, **create_kwargs)
        except DOCKER_ERRORS as e:
            logger.error(f"Failed to create container {container_name}: {e}")
            raise ContainerRuntimeError(f"Failed to create Docker container: {e}")

        try:
            container.start()
        except DOCKER_ERRORS as e:
            logger.error(f"Failed to start container {container_name}: {e}")
            self._discard(container)
            raise ContainerRuntimeError(f"Failed to start Docker container: {e}")

        logger.info(f"Container {container_name} started with ID {container.id}")
        return ContainerResult(container_id=container.id, port=port, password=password)

    def _discard(self, container) -> None:
        """Best-effort removal of a container that never started"""
        try:
            container.remove(force=True)
        except DOCKER_ERRORS as e:
            logger.error(f"Failed to discard container {container.id}: {e}")

    def remove(self, container_id: str) -> None:
        """
        Force-remove a relay container

        Raises:
            ContainerRuntimeError: If Docker refuses the removal
        """
        try:
            container = self.docker.containers.get(container_id)
            container.remove(force=True)
            logger.info(f"Container {container_id} removed")
        except docker.errors.NotFound:
            logger.warning(f"Container {container_id} not found (already removed?)")
        except DOCKER_ERRORS as e:
            logger.error(f"Failed to remove container {container_id}: {e}")
            raise ContainerRuntimeError(f"Failed to remove container: {e}")

    def stop(self, container_id: str) -> None:
        """
        Stop a relay container, keeping it for a later restart

        Raises:
            ContainerRuntimeError: If Docker refuses to stop it
        """
        try:
            container = self.docker.containers.get(container_id)
            container.stop(timeout=self.STOP_TIMEOUT)
            logger.info(f"Container {container_id} stopped")
        except docker.errors.NotFound:
            logger.warning(f"Container {container_id} not found (already removed?)")
        except DOCKER_ERRORS as e:
            logger.error(f"Failed to stop container {container_id}: {e}")
            raise ContainerRuntimeError(f"Failed to stop container: {e}")

    def get_traffic_bytes(self, container_id: str) -> int:
        """
        Total bytes received and sent by a relay since its container started

        Returns:
            rx + tx across all container interfaces (0 when not running)

        Raises:
            ContainerRuntimeError: If stats cannot be read
        """
        try:
            container = self.docker.containers.get(container_id)
            if container.status != "running":
                return 0
            stats = container.stats(stream=False)
        except docker.errors.NotFound:
            raise ContainerRuntimeError(f"Container {container_id} not found")
        except DOCKER_ERRORS as e:
            raise ContainerRuntimeError(f"Failed to read container stats: {e}")

        networks = stats.get("networks") or {}
        return sum(
            iface.get("rx_bytes", 0) + iface.get("tx_bytes", 0)
            for iface in networks.values()
        )
