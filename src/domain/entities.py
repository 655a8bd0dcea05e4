"""
Holder identity registry - per entity type holder id rules.

Each organization declares an entity type. The entity type decides which
record field identifies the holder, which extra fields a pre-registration
row must carry, and how the holder id is validated. The registry maps
entity-type keys to statically known implementations and is consulted once,
when an organization configuration is loaded.
"""

import hashlib
from typing import Any, Protocol

from .exceptions import UnknownEntityType


def hash_strings(values: list[str]) -> str:
    """Derive a stable identifier by hashing '-'-joined strings (md5 hex)."""
    joined = "-".join(str(value) for value in values)
    return hashlib.md5(joined.encode()).hexdigest()


class HolderIdentity(Protocol):
    """Capability set resolved for an organization's entity type."""

    holder_id_field: str

    def get_holder_id(self, record: dict[str, Any]) -> str | None:
        ...

    def get_required_fields(self, organization: dict[str, Any]) -> list[str]:
        ...

    def validate_holder_id(self, record: dict[str, Any]) -> bool:
        ...


class HolderUploadIdentity:
    """Holders identified by their uploaded id, falling back to public key."""

    holder_id_field = "id"

    def get_holder_id(self, record: dict[str, Any]) -> str | None:
        return record.get("id") or record.get("publicKey")

    def get_required_fields(self, organization: dict[str, Any]) -> list[str]:
        return []

    def validate_holder_id(self, record: dict[str, Any]) -> bool:
        return bool(record.get("id") or record.get("publicKey"))


class HolderDownloadIdentity:
    """Holders identified by a hash of their id and client name."""

    holder_id_field = "id"

    def get_holder_id(self, record: dict[str, Any]) -> str | None:
        if not self.validate_holder_id(record):
            return None
        return hash_strings([record["id"], record["clientName"]])

    def get_required_fields(self, organization: dict[str, Any]) -> list[str]:
        return []

    def validate_holder_id(self, record: dict[str, Any]) -> bool:
        return bool(record.get("id") and record.get("clientName"))


class PublicKeyIdentity:
    """Holders identified by their public key; row fields come from org userData."""

    holder_id_field = "publicKey"

    def get_holder_id(self, record: dict[str, Any]) -> str | None:
        return record.get("publicKey")

    def get_required_fields(self, organization: dict[str, Any]) -> list[str]:
        return list(organization.get("userData") or [])

    def validate_holder_id(self, record: dict[str, Any]) -> bool:
        return bool(record.get("publicKey"))


ENTITY_TYPES: dict[str, HolderIdentity] = {
    "holder-upload": HolderUploadIdentity(),
    "holder-download": HolderDownloadIdentity(),
    "nih": PublicKeyIdentity(),
}

DEFAULT_ENTITY_TYPE = "holder-upload"


def resolve_holder_identity(entity_type: str | None) -> HolderIdentity:
    """
    Look up the holder identity implementation for an entity type.

    Raises:
        UnknownEntityType: If no implementation is registered
    """
    key = (entity_type or DEFAULT_ENTITY_TYPE).lower()
    try:
        return ENTITY_TYPES[key]
    except KeyError:
        raise UnknownEntityType(f"No holder identity registered for entity type '{key}'") from None
