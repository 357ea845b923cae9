"""Lifecycle guard for H2O resources.

An H2O resource carries the h2ok finalizer from its first reconciliation on.
The finalizer keeps the API server from removing the resource until h2ok has
torn down the objects generated for it:

    FRESH        no finalizer, no deletion timestamp
    ACTIVE       finalizer, no deletion timestamp
    TERMINATING  finalizer, deletion timestamp: teardown is due
    RELEASED     no finalizer, deletion timestamp: the API server deletes the resource

All functions in this module are pure.
"""

from enum import Enum

from h2ok.models import ClusterResource

FINALIZER_NAME = "h2o3.h2o.ai/finalizer"


class LifecycleState(str, Enum):
    FRESH = "fresh"
    ACTIVE = "active"
    TERMINATING = "terminating"
    RELEASED = "released"


def has_deletion_intent(resource: ClusterResource) -> bool:
    """Return True if a delete has been issued on the resource.

    The API server sets a deletion timestamp instead of deleting a resource
    while finalizers are present.
    """
    return resource.deletion_timestamp is not None


def owns_finalizer(resource: ClusterResource) -> bool:
    """Return True if the resource carries the h2ok finalizer.

    No finalizer typically means the resource has just been created and not been
    reconciled yet, as the first reconciliation always adds it.
    """
    return FINALIZER_NAME in resource.finalizers


def lifecycle_state(resource: ClusterResource) -> LifecycleState:
    if has_deletion_intent(resource):
        return LifecycleState.TERMINATING if owns_finalizer(resource) else LifecycleState.RELEASED
    return LifecycleState.ACTIVE if owns_finalizer(resource) else LifecycleState.FRESH


def finalizers_with(resource: ClusterResource) -> list[str]:
    """Finalizers of the resource with the h2ok finalizer added, keeping the others in order."""
    if owns_finalizer(resource):
        return list(resource.finalizers)
    return [*resource.finalizers, FINALIZER_NAME]


def finalizers_without(resource: ClusterResource) -> list[str]:
    """Finalizers of the resource with the h2ok finalizer removed, keeping the others in order."""
    return [f for f in resource.finalizers if f != FINALIZER_NAME]
