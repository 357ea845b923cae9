"""Kubernetes Services handling module."""

import logging
from typing import Any

from kubernetes import client

from h2ok.kubernetes.base import KubernetesResource
from h2ok.kubernetes.connection import KubernetesConnection

logger = logging.getLogger(__name__)


class ServiceResource(KubernetesResource[client.V1Service]):
    """Handler for Kubernetes Service resources."""

    # Resource type specific constants
    RESOURCE_API_VERSION = "v1"
    RESOURCE_KIND = "Service"

    def __init__(self, connection: KubernetesConnection, namespace: str | None = None):
        super().__init__(connection, namespace)
        self.api = connection.core_v1_api

    def get_resource(self, name: str, namespace: str) -> client.V1Service:
        return self.api.read_namespaced_service(name, namespace)

    def create_resource(self, body: client.V1Service, namespace: str) -> client.V1Service:
        return self.api.create_namespaced_service(namespace=namespace, body=body)

    def replace_resource(self, name: str, body: client.V1Service, namespace: str) -> client.V1Service:
        return self.api.replace_namespaced_service(name=name, namespace=namespace, body=body)

    def patch_resource(self, name: str, body: dict, namespace: str) -> client.V1Service:
        return self.api.patch_namespaced_service(name=name, namespace=namespace, body=body)

    def delete_resource(self, name: str, namespace: str) -> None:
        self.api.delete_namespaced_service(name=name, namespace=namespace)

    def list_call(self, namespace: str) -> tuple[Any, dict[str, Any]]:
        return self.api.list_namespaced_service, {"namespace": namespace}
