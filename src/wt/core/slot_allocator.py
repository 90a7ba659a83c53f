"""Slot allocation and per-slot resource derivation.

Everything here is a pure function of its arguments. Slot ``0`` belongs to
the primary checkout and is never handed out.
"""
from __future__ import annotations

from typing import Dict, Optional, Sequence

from wt.core.exceptions import ConflictError, ValidationError
from wt.core.models import PatchContext, Registry, ServiceConfig, WtConfig


def calculate_ports(slot: int, services: Sequence[ServiceConfig], stride: int) -> Dict[str, int]:
    """Return ``{service name: slot * stride + default port}`` for every service."""
    return {service.name: slot * stride + service.default_port for service in services}


def calculate_db_name(slot: int, base_name: str) -> str:
    """Return the slot database name, e.g. ``app_wt3``."""
    return f"{base_name}_wt{slot}"


def find_available_slot(registry: Registry, max_slots: int) -> Optional[int]:
    """Return the smallest slot in ``1..max_slots`` with no allocation, or None."""
    for slot in range(1, max_slots + 1):
        if str(slot) not in registry.allocations:
            return slot
    return None


def resolve_slot(registry: Registry, max_slots: int, requested: Optional[int] = None) -> int:
    """Pick the slot for a new allocation.

    An explicit ``requested`` slot is honoured exactly or rejected; it is
    never swapped for another free slot.

    Raises:
        ValidationError: ``requested`` is outside ``[1, max_slots]``.
        ConflictError: ``requested`` is taken, or every slot is taken.
    """
    if requested is not None:
        if isinstance(requested, bool) or not isinstance(requested, int) or not 1 <= requested <= max_slots:
            raise ValidationError(
                f"Invalid slot: {requested}. Must be 1-{max_slots}.",
                context={"code": "INVALID_SLOT", "slot": requested, "maxSlots": max_slots},
            )
        if str(requested) in registry.allocations:
            raise ConflictError(
                f"Slot {requested} is already occupied.",
                context={"code": "SLOT_OCCUPIED", "slot": requested},
            )
        return requested

    available = find_available_slot(registry, max_slots)
    if available is None:
        raise ConflictError(
            f"All {max_slots} slots are occupied. Remove a worktree first.",
            context={"code": "NO_SLOTS", "maxSlots": max_slots},
        )
    return available


def build_patch_context(slot: int, config: WtConfig) -> PatchContext:
    """Resolve database name, Redis index, and ports for ``slot``."""
    return PatchContext(
        db_name=calculate_db_name(slot, config.base_database_name),
        redis_db=slot,
        ports=calculate_ports(slot, config.services, config.port_stride),
    )


__all__ = [
    "calculate_ports",
    "calculate_db_name",
    "find_available_slot",
    "resolve_slot",
    "build_patch_context",
]
