"""Local provider: a simulated cloud kept in memory or in a JSON file."""

import asyncio
import copy
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type
from ..utils.errors import (
    ProviderError,
    ProviderFatalError,
    ProviderTransientError,
    ResourceNotFound,
)
from ..utils.logging import get_logger
from .base import Provider
from .registry import ResourceTypeRegistry, default_registry

logger = get_logger("providers.local")

OPERATIONS = ("create", "update", "destroy", "read")


@dataclass
class Fault:
    """An injected provider error."""
    operation: str
    resource_type: Optional[str] = None
    match: Optional[Dict[str, Any]] = None
    error: Type[ProviderError] = ProviderFatalError
    message: str = "injected fault"
    remaining: Optional[int] = None

    def applies(self, operation: str, resource_type: str, attributes: Dict[str, Any]) -> bool:
        if self.operation != operation:
            return False
        if self.resource_type is not None and self.resource_type != resource_type:
            return False
        if self.match:
            for key, expected in self.match.items():
                if attributes.get(key) != expected:
                    return False
        return self.remaining is None or self.remaining > 0


class LocalProvider(Provider):
    """
    Simulated cloud that stores objects by provider id.

    With ``path`` the objects survive between runs (the CLI uses this so that
    plan/apply/destroy behave like a real remote). Without it everything lives
    in memory, which is what the tests use. ``inject_fault`` makes individual
    operations fail, and ``calls`` records every operation in completion
    order.
    """

    name = "local"

    def __init__(
        self,
        registry: Optional[ResourceTypeRegistry] = None,
        path: Optional[str] = None,
        latency: float = 0.0,
    ):
        self.registry = registry or default_registry()
        self.path = Path(path) if path else None
        self.latency = latency
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.counters: Dict[str, int] = {}
        self.calls: List[Tuple[str, str, str]] = []
        self.faults: List[Fault] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._load()

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ProviderFatalError(f"Cannot read local cloud file {self.path}: {e}")
        self.objects = data.get("objects", {})
        self.counters = data.get("counters", {})
        logger.debug(f"Loaded {len(self.objects)} objects from {self.path}")

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump({"objects": self.objects, "counters": self.counters}, f, indent=2, sort_keys=True)

    def inject_fault(
        self,
        operation: str,
        resource_type: Optional[str] = None,
        error: Type[ProviderError] = ProviderFatalError,
        times: Optional[int] = None,
        match: Optional[Dict[str, Any]] = None,
        message: str = "injected fault",
    ) -> Fault:
        """
        Make matching operations raise ``error``.

        Args:
            operation: One of create, update, destroy, read
            resource_type: Only this type (None for all)
            error: Exception class to raise
            times: Number of times to fail (None for always)
            match: Attribute subset the target must carry
            message: Error message
        """
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")
        fault = Fault(operation, resource_type, match, error, message, times)
        self.faults.append(fault)
        return fault

    def simulate_drift(self, provider_id: str, **attributes: Any) -> None:
        """Change an object out of band."""
        obj = self.objects[provider_id]
        obj["attributes"].update(attributes)
        obj["exports"].update(attributes)
        self._save()

    def simulate_deletion(self, provider_id: str) -> None:
        """Delete an object out of band."""
        del self.objects[provider_id]
        self._save()

    def objects_of_type(self, resource_type: str) -> Dict[str, Dict[str, Any]]:
        return {pid: obj for pid, obj in self.objects.items() if obj["type"] == resource_type}

    async def _call(self, operation: str, resource_type: str, attributes: Dict[str, Any]) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.latency:
                await asyncio.sleep(self.latency)
            for fault in self.faults:
                if fault.applies(operation, resource_type, attributes):
                    if fault.remaining is not None:
                        fault.remaining -= 1
                    logger.debug(f"Injected {fault.error.__name__} on {operation} {resource_type}")
                    raise fault.error(f"{operation} {resource_type}: {fault.message}")
        finally:
            self.in_flight -= 1

    def _next_id(self, resource_type: str) -> str:
        descriptor = self.registry.get(resource_type)
        count = self.counters.get(descriptor.id_prefix, 0) + 1
        self.counters[descriptor.id_prefix] = count
        return f"{descriptor.id_prefix}-{count:06x}"

    def _get(self, resource_type: str, provider_id: str) -> Dict[str, Any]:
        obj = self.objects.get(provider_id)
        if obj is None or obj["type"] != resource_type:
            raise ResourceNotFound(f"{resource_type} {provider_id} does not exist")
        return obj

    async def create(self, resource_type: str, attributes: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        await self._call("create", resource_type, attributes)
        provider_id = self._next_id(resource_type)
        descriptor = self.registry.get(resource_type)
        exports = copy.deepcopy(attributes)
        exports.update(descriptor.computed(provider_id, attributes))
        exports["id"] = provider_id
        self.objects[provider_id] = {
            "type": resource_type,
            "attributes": copy.deepcopy(attributes),
            "exports": exports,
        }
        self._save()
        self.calls.append(("create", resource_type, provider_id))
        logger.info(f"Created {resource_type} {provider_id}")
        return provider_id, copy.deepcopy(exports)

    async def update(self, resource_type: str, provider_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        obj = self._get(resource_type, provider_id)
        await self._call("update", resource_type, {**obj["attributes"], **changes})
        obj = self._get(resource_type, provider_id)
        descriptor = self.registry.get(resource_type)
        for key, value in changes.items():
            if not descriptor.is_updatable(key):
                raise ProviderFatalError(f"{resource_type}.{key} cannot be updated in place")
            if value is None:
                obj["attributes"].pop(key, None)
                obj["exports"].pop(key, None)
            else:
                obj["attributes"][key] = copy.deepcopy(value)
                obj["exports"][key] = copy.deepcopy(value)
        self._save()
        self.calls.append(("update", resource_type, provider_id))
        logger.info(f"Updated {resource_type} {provider_id}: {sorted(changes)}")
        return copy.deepcopy(obj["exports"])

    async def destroy(self, resource_type: str, provider_id: str) -> None:
        obj = self._get(resource_type, provider_id)
        await self._call("destroy", resource_type, obj["attributes"])
        self.objects.pop(provider_id, None)
        self._save()
        self.calls.append(("destroy", resource_type, provider_id))
        logger.info(f"Destroyed {resource_type} {provider_id}")

    async def read(self, resource_type: str, provider_id: str) -> Dict[str, Any]:
        obj = self._get(resource_type, provider_id)
        await self._call("read", resource_type, obj["attributes"])
        return copy.deepcopy(self._get(resource_type, provider_id)["exports"])
