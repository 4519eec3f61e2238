"""
Dependency Container

The explicit application context: configuration, logging and error handling
are created once, registered here, and looked up by the managers that need
them instead of living in module-level globals.
"""

from typing import Any, Callable, Dict
import logging
from threading import Lock


class DependencyContainer:
    """
    Registry of shared services.

    Supports:
    - Registered instances
    - Lazily created singletons from factories
    - Thread-safe lookups
    """

    def __init__(self):
        self._services: Dict[str, Any] = {}
        self._factories: Dict[str, Callable[[], Any]] = {}
        self._lock = Lock()
        self.logger = logging.getLogger(__name__)

    def register_service(self, name: str, instance: Any) -> None:
        """
        Register a service instance.

        Args:
            name: Service name for retrieval
            instance: The service instance to register
        """
        with self._lock:
            if name in self._services:
                self.logger.warning(f"Overriding existing service: {name}")
            self._services[name] = instance
            self.logger.debug(f"Registered service: {name} ({type(instance).__name__})")

    def register_factory(self, name: str, factory: Callable[[], Any]) -> None:
        """
        Register a factory; the instance is created on first lookup and cached.

        Args:
            name: Service name for retrieval
            factory: Zero-argument callable creating the service
        """
        with self._lock:
            self._factories[name] = factory
            self.logger.debug(f"Registered factory: {name}")

    def get_service(self, name: str) -> Any:
        """
        Get a service instance, creating it if necessary.

        Raises:
            ValueError: If no service or factory is registered under ``name``
        """
        with self._lock:
            if name in self._services:
                return self._services[name]

            if name not in self._factories:
                raise ValueError(f"Service '{name}' not found")

            try:
                instance = self._factories.pop(name)()
            except Exception as e:
                self.logger.error(f"Failed to create service '{name}': {e}", exc_info=True)
                raise ValueError(f"Failed to create service '{name}': {e}") from e

            self._services[name] = instance
            self.logger.debug(f"Created and cached service: {name}")
            return instance

    def has_service(self, name: str) -> bool:
        with self._lock:
            return name in self._services or name in self._factories

    def clear(self) -> None:
        """Clean up every service that supports it and forget them all."""
        with self._lock:
            services = list(self._services.items())
            self._services.clear()
            self._factories.clear()

        for name, service in reversed(services):
            if hasattr(service, 'cleanup'):
                try:
                    service.cleanup()
                except Exception as e:
                    self.logger.error(f"Error during cleanup of {name}: {e}")
        self.logger.debug("Cleared all services")
