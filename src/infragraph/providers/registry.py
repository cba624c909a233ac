"""Declarative capability registry for resource types."""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, Optional
from ..utils.logging import get_logger

logger = get_logger("providers.registry")


def _no_computed(provider_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
    return {}


@dataclass(frozen=True)
class ResourceTypeDescriptor:
    """
    Per-type capability bundle.

    Attributes not listed in ``updatable`` require a replace when they change.
    ``computed`` fabricates the provider-side attributes (arn, ip addresses)
    that the local provider exports on top of the configured ones.
    """
    type: str
    updatable: FrozenSet[str] = frozenset()
    id_prefix: str = "res"
    computed: Callable[[str, Dict[str, Any]], Dict[str, Any]] = field(default=_no_computed, compare=False)
    registered: bool = True

    def is_updatable(self, attribute: str) -> bool:
        return attribute in self.updatable


def _arn(service: str, kind: str) -> Callable[[str, Dict[str, Any]], Dict[str, Any]]:
    def computed(provider_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
        return {"arn": f"arn:aws:{service}:local:000000000000:{kind}/{provider_id}"}
    return computed


def _named(service: str, kind: str) -> Callable[[str, Dict[str, Any]], Dict[str, Any]]:
    """Types addressed by name: the name defaults to the provider id."""
    def computed(provider_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
        exported = _arn(service, kind)(provider_id, attributes)
        exported["name"] = attributes.get("name") or provider_id
        return exported
    return computed


def _eip_computed(provider_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
    octet = sum(ord(c) for c in provider_id) % 250 + 1
    return {"allocation_id": provider_id, "public_ip": f"203.0.113.{octet}"}


def _instance_computed(provider_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
    octet = sum(ord(c) for c in provider_id) % 250 + 1
    exported = _arn("ec2", "instance")(provider_id, attributes)
    exported["private_ip"] = f"10.0.0.{octet}"
    return exported


def _db_computed(provider_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
    port = attributes.get("port") or 5432
    address = f"{provider_id}.local.rds.amazonaws.com"
    exported = _arn("rds", "db")(provider_id, attributes)
    exported.update({"address": address, "port": port, "endpoint": f"{address}:{port}"})
    return exported


AWS_RESOURCE_TYPES = {
    "aws_vpc": {
        "id_prefix": "vpc",
        "updatable": ["tags", "enable_dns_support", "enable_dns_hostnames"],
        "computed": _arn("ec2", "vpc"),
    },
    "aws_subnet": {
        "id_prefix": "subnet",
        "updatable": ["tags", "map_public_ip_on_launch"],
        "computed": _arn("ec2", "subnet"),
    },
    "aws_internet_gateway": {
        "id_prefix": "igw",
        "updatable": ["tags", "vpc_id"],
        "computed": _arn("ec2", "internet-gateway"),
    },
    "aws_eip": {
        "id_prefix": "eipalloc",
        "updatable": ["tags"],
        "computed": _eip_computed,
    },
    "aws_nat_gateway": {
        "id_prefix": "nat",
        "updatable": ["tags"],
    },
    "aws_route_table": {
        "id_prefix": "rtb",
        "updatable": ["tags", "route"],
    },
    "aws_route_table_association": {
        "id_prefix": "rtbassoc",
        "updatable": ["route_table_id"],
    },
    "aws_security_group": {
        "id_prefix": "sg",
        "updatable": ["tags", "ingress", "egress"],
        "computed": _arn("ec2", "security-group"),
    },
    "aws_iam_role": {
        "id_prefix": "role",
        "updatable": ["tags", "assume_role_policy", "description", "max_session_duration"],
        "computed": _named("iam", "role"),
    },
    "aws_iam_role_policy_attachment": {
        "id_prefix": "attach",
        "updatable": [],
    },
    "aws_iam_instance_profile": {
        "id_prefix": "profile",
        "updatable": ["role", "tags"],
        "computed": _named("iam", "instance-profile"),
    },
    "aws_instance": {
        "id_prefix": "i",
        "updatable": [
            "tags", "instance_type", "vpc_security_group_ids",
            "iam_instance_profile", "monitoring",
        ],
        "computed": _instance_computed,
    },
    "aws_db_subnet_group": {
        "id_prefix": "dbsubnet",
        "updatable": ["subnet_ids", "description", "tags"],
        "computed": _named("rds", "subgrp"),
    },
    "aws_db_instance": {
        "id_prefix": "db",
        "updatable": [
            "instance_class", "allocated_storage", "vpc_security_group_ids",
            "tags", "backup_retention_period", "multi_az", "password",
            "deletion_protection", "skip_final_snapshot",
        ],
        "computed": _db_computed,
    },
}


class ResourceTypeRegistry:
    """Lookup table of ResourceTypeDescriptor keyed by type string."""

    def __init__(self, descriptors: Optional[Iterable[ResourceTypeDescriptor]] = None):
        self._descriptors: Dict[str, ResourceTypeDescriptor] = {}
        for descriptor in descriptors or []:
            self.register(descriptor)

    def register(self, descriptor: ResourceTypeDescriptor) -> None:
        self._descriptors[descriptor.type] = descriptor

    def __contains__(self, resource_type: str) -> bool:
        return resource_type in self._descriptors

    def types(self):
        return sorted(self._descriptors)

    def get(self, resource_type: str) -> ResourceTypeDescriptor:
        """
        Descriptor for a type. Unknown types get a descriptor with nothing
        updatable, so every change to them plans as a replace.
        """
        descriptor = self._descriptors.get(resource_type)
        if descriptor is None:
            logger.warning(f"No descriptor registered for {resource_type}; all changes will force replacement")
            descriptor = ResourceTypeDescriptor(type=resource_type, registered=False)
            self._descriptors[resource_type] = descriptor
        return descriptor


def default_registry() -> ResourceTypeRegistry:
    """Registry populated with the bundled AWS network/compute/database types."""
    registry = ResourceTypeRegistry()
    for resource_type, entry in AWS_RESOURCE_TYPES.items():
        registry.register(ResourceTypeDescriptor(
            type=resource_type,
            updatable=frozenset(entry["updatable"]),
            id_prefix=entry["id_prefix"],
            computed=entry.get("computed", _no_computed),
        ))
    return registry
