"""Kubernetes events handling module.

Deployments and teardowns are reported as events regarding the H2O resource,
so ``kubectl describe h2o <name>`` shows what h2ok did with the cluster.
"""

import logging
from datetime import UTC, datetime
from typing import Any

import urllib3
from kubernetes import client
from kubernetes.client.exceptions import ApiException

from h2ok.kubernetes.connection import KubernetesConnection
from h2ok.kubernetes.resources.h2os import H2O_GROUP, H2O_KIND, H2O_VERSION

logger = logging.getLogger(__name__)

EVENT_TYPE_NORMAL = "Normal"

EVENT_REASON_DEPLOYED = "Deployed"
EVENT_REASON_UNDEPLOYED = "Undeployed"

EVENT_ACTION_DEPLOYMENT = "Deployment"
EVENT_ACTION_TEARDOWN = "Teardown"

# Reported as the controller emitting the events
EVENT_COMPONENT = "h2ok"


def create_deployment_event(connection: KubernetesConnection, resource: dict[str, Any], message: str) -> None:
    """Report that the objects of an H2O cluster were submitted.

    Args:
        connection: The Kubernetes connection to use
        resource: The H2O resource, as returned by the custom objects API
        message: Detailed message for the event
    """
    _create_event(connection, resource, EVENT_REASON_DEPLOYED, EVENT_ACTION_DEPLOYMENT, message)


def create_teardown_event(connection: KubernetesConnection, resource: dict[str, Any], message: str) -> None:
    """Report that the objects of an H2O cluster were torn down.

    Args:
        connection: The Kubernetes connection to use
        resource: The H2O resource, as returned by the custom objects API
        message: Detailed message for the event
    """
    _create_event(connection, resource, EVENT_REASON_UNDEPLOYED, EVENT_ACTION_TEARDOWN, message)


def _create_event(
    connection: KubernetesConnection,
    resource: dict[str, Any],
    reason: str,
    action: str,
    message: str,
) -> None:
    """Create an event regarding an H2O resource.

    Events are informational: a failure to create one is logged, never raised.
    """
    metadata = resource.get("metadata") or {}
    name = metadata.get("name")
    namespace = metadata.get("namespace")
    if not name or not namespace:
        logger.warning(f"Cannot create event for {H2O_KIND} without name and namespace")
        return

    body = client.EventsV1Event(
        metadata=client.V1ObjectMeta(generate_name=f"{name}-", namespace=namespace),
        reason=reason,
        note=message,
        type=EVENT_TYPE_NORMAL,
        reporting_controller=EVENT_COMPONENT,
        reporting_instance=connection.hostname,
        action=action,
        regarding=client.V1ObjectReference(
            api_version=f"{H2O_GROUP}/{H2O_VERSION}",
            kind=H2O_KIND,
            name=name,
            namespace=namespace,
            uid=metadata.get("uid"),
        ),
        event_time=datetime.now(UTC),
    )

    try:
        connection.events_v1_api.create_namespaced_event(namespace=namespace, body=body)
    except (ApiException, urllib3.exceptions.HTTPError) as e:
        logger.warning(f"Failed to create {reason} event for {H2O_KIND} {namespace}/{name}: {e}")
        return
    logger.debug(f"Created {reason} event for {H2O_KIND} {namespace}/{name}")
