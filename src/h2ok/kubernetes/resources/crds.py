"""CustomResourceDefinitions handling module.

CustomResourceDefinitions are cluster-scoped: the namespace given to any
operation is ignored.
"""

import logging
from typing import Any

from kubernetes import client

from h2ok.kubernetes.base import KubernetesResource
from h2ok.kubernetes.connection import KubernetesConnection

logger = logging.getLogger(__name__)


class CustomResourceDefinitionResource(KubernetesResource[client.V1CustomResourceDefinition]):
    """Handler for CustomResourceDefinition resources."""

    # Resource type specific constants
    RESOURCE_API_VERSION = "apiextensions.k8s.io/v1"
    RESOURCE_KIND = "CustomResourceDefinition"
    NAMESPACED = False

    def __init__(self, connection: KubernetesConnection):
        super().__init__(connection)
        self.api = connection.apiextensions_v1_api

    def get_resource(self, name: str, namespace: None = None) -> client.V1CustomResourceDefinition:
        return self.api.read_custom_resource_definition(name)

    def create_resource(
        self, body: client.V1CustomResourceDefinition, namespace: None = None
    ) -> client.V1CustomResourceDefinition:
        return self.api.create_custom_resource_definition(body=body)

    def replace_resource(
        self, name: str, body: client.V1CustomResourceDefinition, namespace: None = None
    ) -> client.V1CustomResourceDefinition:
        return self.api.replace_custom_resource_definition(name=name, body=body)

    def patch_resource(self, name: str, body: dict, namespace: None = None) -> client.V1CustomResourceDefinition:
        return self.api.patch_custom_resource_definition(name=name, body=body)

    def delete_resource(self, name: str, namespace: None = None) -> None:
        self.api.delete_custom_resource_definition(name=name)

    def list_call(self, namespace: None = None) -> tuple[Any, dict[str, Any]]:
        return self.api.list_custom_resource_definition, {}
