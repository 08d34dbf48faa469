"""
Production Resource Manager

Tracks the open ports, sockets and monitor threads of a running gate so
they are released in reverse order of acquisition on shutdown.
"""

import time
import threading
import logging
from typing import Dict, Callable, Any, List, Optional
from dataclasses import dataclass
from enum import Enum

log = logging.getLogger(__name__)


class ResourceStatus(Enum):
    ACTIVE = "active"
    CLEANED = "cleaned"
    FAILED = "failed"


@dataclass
class ResourceInfo:
    name: str
    cleanup_func: Callable[[], Any]
    status: ResourceStatus = ResourceStatus.ACTIVE
    registered_at: float = 0.0
    cleanup_attempts: int = 0
    last_error: Optional[Exception] = None


class ProductionResourceManager:
    """Resource registry with LIFO cleanup and bounded retries"""

    def __init__(self, max_cleanup_retries: int = 2, retry_delay: float = 0.05):
        self.resources: Dict[str, ResourceInfo] = {}
        self.cleanup_order: List[str] = []
        self.max_cleanup_retries = max_cleanup_retries
        self.retry_delay = retry_delay
        self.lock = threading.Lock()
        self.metrics = {
            'resources_registered': 0,
            'resources_cleaned': 0,
            'cleanup_failures': 0,
        }

    def register_resource(self, name: str, cleanup_func: Callable[[], Any]):
        """
        Register a cleanup handler under a unique name

        Re-registering a name replaces the old handler and moves it to the
        top of the cleanup stack.
        """
        with self.lock:
            if name in self.resources:
                log.warning(f"Resource '{name}' already registered, replacing")
                self.cleanup_order.remove(name)

            self.resources[name] = ResourceInfo(
                name=name,
                cleanup_func=cleanup_func,
                registered_at=time.time(),
            )
            self.cleanup_order.append(name)
            self.metrics['resources_registered'] += 1
            log.debug(f"✓ Registered resource: {name}")

    def unregister_resource(self, name: str) -> bool:
        """Forget a resource without running its cleanup"""
        with self.lock:
            if name not in self.resources:
                return False
            del self.resources[name]
            self.cleanup_order.remove(name)
            return True

    def cleanup_resource(self, name: str) -> bool:
        with self.lock:
            return self._cleanup_resource(name)

    def cleanup_all(self) -> Dict[str, bool]:
        """
        Clean up all registered resources, last registered first

        Returns:
            Resource name -> cleanup success
        """
        results = {}
        start = time.time()

        with self.lock:
            log.info(f"Cleaning up {len(self.cleanup_order)} resources...")
            for name in reversed(self.cleanup_order):
                results[name] = self._cleanup_resource(name)

            self.resources.clear()
            self.cleanup_order.clear()

        log.info(f"✓ Cleanup completed in {time.time() - start:.2f}s")
        return results

    def get_resource_status(self, name: str) -> Optional[ResourceStatus]:
        info = self.resources.get(name)
        return info.status if info else None

    def get_metrics(self) -> Dict[str, Any]:
        active = sum(1 for r in self.resources.values() if r.status == ResourceStatus.ACTIVE)
        return {
            **self.metrics,
            'active_resources': active,
            'registered_resources': len(self.resources),
        }

    def _cleanup_resource(self, name: str) -> bool:
        """Run one cleanup handler (lock held by caller)"""
        info = self.resources.get(name)
        if info is None:
            log.warning(f"Resource '{name}' not found for cleanup")
            return False
        if info.status != ResourceStatus.ACTIVE:
            return info.status == ResourceStatus.CLEANED

        for attempt in range(self.max_cleanup_retries):
            try:
                info.cleanup_func()
                info.status = ResourceStatus.CLEANED
                self.metrics['resources_cleaned'] += 1
                log.debug(f"✓ Cleaned up resource: {name}")
                return True
            except Exception as e:
                info.cleanup_attempts += 1
                info.last_error = e
                log.warning(f"Cleanup attempt {attempt + 1} failed for '{name}': {e}")
                if attempt < self.max_cleanup_retries - 1:
                    time.sleep(self.retry_delay * (attempt + 1))

        info.status = ResourceStatus.FAILED
        self.metrics['cleanup_failures'] += 1
        log.error(f"✗ Failed to clean up resource: {name}")
        return False
