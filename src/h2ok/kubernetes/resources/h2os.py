"""H2O custom resources handling module.

H2O resources are custom objects: the API returns them as plain dictionaries.
"""

import logging
from typing import Any, ClassVar

from h2ok.kubernetes.base import KubernetesResource
from h2ok.kubernetes.connection import KubernetesConnection

logger = logging.getLogger(__name__)

H2O_GROUP = "h2o.ai"
H2O_VERSION = "v1"
H2O_PLURAL = "h2os"
H2O_SINGULAR = "h2o"
H2O_KIND = "H2O"

MERGE_PATCH = "application/merge-patch+json"


class H2OResource(KubernetesResource[dict[str, Any]]):
    """Handler for H2O custom resources."""

    RESOURCE_API_VERSION: ClassVar[str] = f"{H2O_GROUP}/{H2O_VERSION}"
    RESOURCE_KIND: ClassVar[str] = H2O_KIND

    def __init__(self, connection: KubernetesConnection, namespace: str | None = None):
        """Initialize the H2O resource handler.

        Args:
            connection: The Kubernetes connection to use
            namespace: Namespace used when an operation is not given one.
        """
        super().__init__(connection, namespace)
        self.api = connection.custom_objects_api

    def get_resource(self, name: str, namespace: str) -> dict[str, Any]:
        return self.api.get_namespaced_custom_object(
            group=H2O_GROUP,
            version=H2O_VERSION,
            namespace=namespace,
            plural=H2O_PLURAL,
            name=name,
        )

    def create_resource(self, body: dict[str, Any], namespace: str) -> dict[str, Any]:
        return self.api.create_namespaced_custom_object(
            group=H2O_GROUP,
            version=H2O_VERSION,
            namespace=namespace,
            plural=H2O_PLURAL,
            body=body,
        )

    def replace_resource(self, name: str, body: dict[str, Any], namespace: str) -> dict[str, Any]:
        return self.api.replace_namespaced_custom_object(
            group=H2O_GROUP,
            version=H2O_VERSION,
            namespace=namespace,
            plural=H2O_PLURAL,
            name=name,
            body=body,
        )

    def patch_resource(self, name: str, body: dict, namespace: str) -> dict[str, Any]:
        """Apply a JSON merge patch to an H2O resource.

        Args:
            name: Name of the resource.
            body: The merge patch to apply.
            namespace: Namespace of the resource.

        Returns:
            The patched resource.
        """
        return self.api.patch_namespaced_custom_object(
            group=H2O_GROUP,
            version=H2O_VERSION,
            namespace=namespace,
            plural=H2O_PLURAL,
            name=name,
            body=body,
            _content_type=MERGE_PATCH,
        )

    def delete_resource(self, name: str, namespace: str) -> None:
        self.api.delete_namespaced_custom_object(
            group=H2O_GROUP,
            version=H2O_VERSION,
            namespace=namespace,
            plural=H2O_PLURAL,
            name=name,
        )

    def list_call(self, namespace: str) -> tuple[Any, dict[str, Any]]:
        return self.api.list_namespaced_custom_object, {
            "group": H2O_GROUP,
            "version": H2O_VERSION,
            "namespace": namespace,
            "plural": H2O_PLURAL,
        }

    def get_resource_name(self, resource: dict[str, Any]) -> str:
        return resource["metadata"]["name"]

    def build_body(self, name: str, namespace: str, spec: dict[str, Any]) -> dict[str, Any]:
        """Build a new H2O resource.

        Args:
            name: Name of the resource.
            namespace: Namespace of the resource.
            spec: The spec of the resource, as stored in the API.

        Returns:
            The H2O resource body, ready to be created.
        """
        return {
            "apiVersion": self.RESOURCE_API_VERSION,
            "kind": self.RESOURCE_KIND,
            "metadata": {"name": name, "namespace": namespace},
            "spec": spec,
        }
