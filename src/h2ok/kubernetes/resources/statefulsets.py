"""Kubernetes StatefulSets handling module.

This module provides specific functionality for managing Kubernetes StatefulSets.
"""

import logging
from typing import Any

from kubernetes import client

from h2ok.kubernetes.base import KubernetesResource
from h2ok.kubernetes.connection import KubernetesConnection

logger = logging.getLogger(__name__)


class StatefulSetResource(KubernetesResource[client.V1StatefulSet]):
    """Handler for Kubernetes StatefulSet resources."""

    # Resource type specific constants
    RESOURCE_API_VERSION = "apps/v1"
    RESOURCE_KIND = "StatefulSet"

    def __init__(self, connection: KubernetesConnection, namespace: str | None = None):
        """Initialize the StatefulSet resource handler.

        Args:
            connection: The Kubernetes connection to use
            namespace: Namespace used when an operation is not given one.
        """
        super().__init__(connection, namespace)
        # API client for statefulsets
        self.api = connection.apps_v1_api

    def get_resource(self, name: str, namespace: str) -> client.V1StatefulSet:
        return self.api.read_namespaced_stateful_set(name, namespace)

    def create_resource(self, body: client.V1StatefulSet, namespace: str) -> client.V1StatefulSet:
        return self.api.create_namespaced_stateful_set(namespace=namespace, body=body)

    def replace_resource(self, name: str, body: client.V1StatefulSet, namespace: str) -> client.V1StatefulSet:
        return self.api.replace_namespaced_stateful_set(name=name, namespace=namespace, body=body)

    def patch_resource(self, name: str, body: dict, namespace: str) -> client.V1StatefulSet:
        return self.api.patch_namespaced_stateful_set(name=name, namespace=namespace, body=body)

    def delete_resource(self, name: str, namespace: str) -> None:
        self.api.delete_namespaced_stateful_set(name=name, namespace=namespace)

    def list_call(self, namespace: str) -> tuple[Any, dict[str, Any]]:
        return self.api.list_namespaced_stateful_set, {"namespace": namespace}
