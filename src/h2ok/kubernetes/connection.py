"""Kubernetes connection management.

This module handles the connection to the Kubernetes API.
"""
import logging
import socket
from pathlib import Path

from kubernetes import client, config

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "default"
SERVICE_ACCOUNT_NAMESPACE_FILE = Path("/var/run/secrets/kubernetes.io/serviceaccount/namespace")


class KubernetesConnection:
    """Connection manager for the Kubernetes API.

    This class manages authentication and connection to the Kubernetes API.
    It is shared among all resource handlers to avoid duplication of connection logic.
    """

    def __init__(self, kubeconfig: str | None = None):
        """Initialize the Kubernetes connection.

        Uses the given kubeconfig if any. Otherwise attempts to connect using in-cluster
        config first, falling back to the default kubeconfig for local development.

        Args:
            kubeconfig: Optional path to a kubeconfig file.
        """
        self.kubeconfig = kubeconfig
        self.in_cluster = False
        self._setup_connection()
        # Get hostname for event reporting
        self.hostname = socket.gethostname()
        self.default_namespace = self._resolve_default_namespace()

    def _setup_connection(self) -> None:
        """Set up the connection to the Kubernetes API."""
        if self.kubeconfig:
            try:
                config.load_kube_config(config_file=self.kubeconfig)
                logger.info(f"Using kubeconfig configuration from {self.kubeconfig}")
            except (config.ConfigException, OSError) as e:
                logger.error(f"Failed to load Kubernetes configuration from {self.kubeconfig}.")
                raise RuntimeError(f"Kubernetes configuration error: {self.kubeconfig} is invalid.") from e
        else:
            try:
                # Try to load in-cluster config first (for when running in a pod)
                config.load_incluster_config()
                self.in_cluster = True
                logger.info("Using in-cluster configuration")
            except config.ConfigException:
                try:
                    # Fall back to kubeconfig for local development
                    config.load_kube_config()
                    logger.info("Using kubeconfig configuration")
                except config.ConfigException as e:
                    # Provide a clear error message if kubeconfig is not available or invalid
                    logger.error(
                        "Failed to load Kubernetes configuration. "
                        "Ensure that the kubeconfig file is available and valid."
                    )
                    raise RuntimeError(
                        "Kubernetes configuration error: kubeconfig file is missing or invalid.") from e

        # Initialize API clients
        self.apps_v1_api = client.AppsV1Api()
        self.core_v1_api = client.CoreV1Api()
        self.networking_v1_api = client.NetworkingV1Api()
        self.apiextensions_v1_api = client.ApiextensionsV1Api()
        self.custom_objects_api = client.CustomObjectsApi()
        self.events_v1_api = client.EventsV1Api()

    def _resolve_default_namespace(self) -> str:
        """Find the namespace used when the user does not specify one.

        Returns:
            The service account namespace when running in a pod, the namespace of the
            active kubeconfig context otherwise, "default" as a last resort.
        """
        if self.in_cluster:
            try:
                return SERVICE_ACCOUNT_NAMESPACE_FILE.read_text().strip() or DEFAULT_NAMESPACE
            except OSError:
                logger.debug("Service account namespace file not readable, using the default namespace")
                return DEFAULT_NAMESPACE

        try:
            _, active_context = config.list_kube_config_contexts(config_file=self.kubeconfig)
        except (config.ConfigException, OSError) as e:
            logger.debug(f"Unable to read kubeconfig contexts: {e}")
            return DEFAULT_NAMESPACE

        if not active_context:
            return DEFAULT_NAMESPACE
        return active_context.get("context", {}).get("namespace") or DEFAULT_NAMESPACE
