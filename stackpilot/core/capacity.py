"""Capacity update planning.

Computes the capacity requested by an update run from the live group's
bounds and the command line overrides, and validates it before anything is
changed on the live group.
"""

from ..models.config import RunConfig
from ..models.group import GroupDescriptor
from ..models.stack import Capacity, Stack
from .exceptions import CapacityValidationError


def make_capacity(min_size: int, max_size: int, desired: int) -> Capacity:
    return Capacity(min=min_size, max=max_size, desired=desired)


def null_check(value: int, origin: int) -> int:
    """Return ``origin`` when no override was supplied (negative value)."""
    if value < 0:
        return origin
    return value


def plan_capacity(old: Capacity, config: RunConfig) -> Capacity:
    """Apply the run's overrides on top of the live capacity."""
    return make_capacity(
        null_check(config.min, old.min),
        null_check(config.max, old.max),
        null_check(config.desired, old.desired),
    )


def check_update_information(old: Capacity, new: Capacity) -> None:
    """Validate a capacity update.

    Rules are checked in order and the first violation is raised.

    Raises:
        CapacityValidationError: If the new bounds are inconsistent or unchanged
    """
    if new.min > new.max:
        raise CapacityValidationError("minimum value cannot be larger than maximum value")

    if new.min > new.desired:
        raise CapacityValidationError("desired value cannot be smaller than minimum value")

    if new.desired > new.max:
        raise CapacityValidationError("desired value cannot be larger than max value")

    if old == new:
        raise CapacityValidationError("nothing is updated")


def is_downsizing(old: Capacity, new: Capacity) -> bool:
    return old.desired > new.desired


def build_update_stack(region: str, group: GroupDescriptor) -> Stack:
    """Synthetic stack describing a live group in its target state.

    The stack name is the live group name so convergence results are keyed by it.
    """
    return Stack(
        stack=group.name,
        region=group.region or region,
        capacity=group.capacity,
        instance_type=group.instance_type,
        ami=group.ami,
        tags=dict(group.tags),
    )
