"""Base module for Kubernetes resources.

This module provides the base class for all Kubernetes resource handlers.

The official Kubernetes client is blocking. Handlers expose its calls as
coroutines running in a worker thread, so a reconciliation pass can suspend
while waiting on the API server, and translate every client failure into a
PlatformError.
"""

import abc
import asyncio
import logging
import math
from collections.abc import AsyncIterator, Callable
from typing import Any, ClassVar, Generic, TypeVar

import urllib3
from kubernetes import watch
from kubernetes.client.exceptions import ApiException

from h2ok.errors import PlatformError
from h2ok.kubernetes.connection import KubernetesConnection

logger = logging.getLogger(__name__)

# Type variable for resource types
T = TypeVar("T")

# Event types delivered by a watch that carry the current state of the object
WATCH_STATE_EVENTS = ("ADDED", "MODIFIED")


class KubernetesResource(Generic[T], abc.ABC):
    """Base class for all Kubernetes resources.

    This abstract base class defines the operations h2ok performs on a resource
    type: get, create, replace, patch, delete and watch a single named object.
    """

    # Resource type specific constants
    RESOURCE_API_VERSION: ClassVar[str]
    RESOURCE_KIND: ClassVar[str]
    NAMESPACED: ClassVar[bool] = True

    def __init__(self, connection: KubernetesConnection, namespace: str | None = None):
        """Initialize the resource handler.

        Args:
            connection: The Kubernetes connection to use
            namespace: Namespace used when an operation is not given one. Ignored for cluster-scoped resources.
        """
        self.connection = connection
        self.namespace = namespace

    @abc.abstractmethod
    def get_resource(self, name: str, namespace: str | None) -> T:
        """Get a specific resource by name.

        Args:
            name: Name of the resource.
            namespace: Namespace of the resource.

        Returns:
            The resource object.
        """
        pass

    @abc.abstractmethod
    def create_resource(self, body: Any, namespace: str | None) -> T:
        """Create a resource.

        Args:
            body: The manifest of the resource.
            namespace: Namespace to create the resource in.

        Returns:
            The created resource.
        """
        pass

    @abc.abstractmethod
    def replace_resource(self, name: str, body: Any, namespace: str | None) -> T:
        """Replace a resource as a whole with the given manifest.

        Args:
            name: Name of the resource.
            body: The new manifest of the resource.
            namespace: Namespace of the resource.

        Returns:
            The replaced resource.
        """
        pass

    @abc.abstractmethod
    def patch_resource(self, name: str, body: dict, namespace: str | None) -> T:
        """Patch a specific resource with the given body.

        Args:
            name: Name of the resource.
            body: The patch body to apply.
            namespace: Namespace of the resource.

        Returns:
            The patched resource.
        """
        pass

    @abc.abstractmethod
    def delete_resource(self, name: str, namespace: str | None) -> None:
        """Delete a resource.

        Args:
            name: Name of the resource.
            namespace: Namespace of the resource.
        """
        pass

    @abc.abstractmethod
    def list_call(self, namespace: str | None) -> tuple[Callable[..., Any], dict[str, Any]]:
        """Get the list function of this resource type, used to open watches.

        Args:
            namespace: Namespace to list resources in.

        Returns:
            The list function and the keyword arguments it must be called with.
        """
        pass

    def get_resource_name(self, resource: T) -> str:
        """Get the name of a resource.

        Args:
            resource: The resource to get the name for.

        Returns:
            The name of the resource.
        """
        return resource.metadata.name

    def describe(self, name: str, namespace: str | None) -> str:
        """Human readable reference to a resource, used in logs and errors."""
        if self.NAMESPACED and namespace:
            return f"{self.RESOURCE_KIND} {namespace}/{name}"
        return f"{self.RESOURCE_KIND} {name}"

    def _namespace(self, namespace: str | None) -> str | None:
        if not self.NAMESPACED:
            return None
        return namespace or self.namespace

    async def _call(self, action: str, target: str, function: Callable[..., Any], *args, **kwargs) -> Any:
        """Run a blocking client call in a worker thread.

        Raises:
            PlatformError: The API server rejected the call or could not be reached.
        """
        try:
            return await asyncio.to_thread(function, *args, **kwargs)
        except ApiException as e:
            raise PlatformError(f"Error {action} {target}: {e.status} {e.reason}", status=e.status) from e
        except urllib3.exceptions.HTTPError as e:
            raise PlatformError(f"Error {action} {target}: {e}") from e

    async def get(self, name: str, namespace: str | None = None) -> T | None:
        """Get a resource, or None if it does not exist."""
        ns = self._namespace(namespace)
        try:
            return await self._call("getting", self.describe(name, ns), self.get_resource, name, ns)
        except PlatformError as e:
            if e.not_found:
                return None
            raise

    async def create(self, body: Any, namespace: str | None = None) -> T:
        ns = self._namespace(namespace)
        name = self.get_resource_name(body)
        result = await self._call("creating", self.describe(name, ns), self.create_resource, body, ns)
        logger.info(f"Created {self.describe(name, ns)}")
        return result

    async def replace(self, name: str, body: Any, namespace: str | None = None) -> T:
        ns = self._namespace(namespace)
        result = await self._call("replacing", self.describe(name, ns), self.replace_resource, name, body, ns)
        logger.info(f"Replaced {self.describe(name, ns)}")
        return result

    async def patch(self, name: str, body: dict, namespace: str | None = None) -> T:
        ns = self._namespace(namespace)
        result = await self._call("patching", self.describe(name, ns), self.patch_resource, name, body, ns)
        logger.debug(f"Patched {self.describe(name, ns)}: {body}")
        return result

    async def delete(self, name: str, namespace: str | None = None) -> None:
        ns = self._namespace(namespace)
        await self._call("deleting", self.describe(name, ns), self.delete_resource, name, ns)
        logger.info(f"Deleted {self.describe(name, ns)}")

    async def create_or_replace(self, body: Any, namespace: str | None = None) -> T:
        """Create a resource if it does not exist, otherwise replace it as a whole.

        Args:
            body: The manifest of the resource.
            namespace: Namespace of the resource.

        Returns:
            The created or replaced resource.
        """
        name = self.get_resource_name(body)
        if await self.get(name, namespace) is None:
            return await self.create(body, namespace)
        return await self.replace(name, body, namespace)

    async def watch(self, name: str, namespace: str | None = None, timeout: float = 60) -> AsyncIterator[dict]:
        """Watch changes of a single named resource.

        The API server closes the watch once ``timeout`` elapses. Closing the
        iterator early stops the underlying watch after its next event.

        Args:
            name: Name of the resource to watch.
            namespace: Namespace of the resource.
            timeout: Duration of the watch in seconds.

        Yields:
            Watch events, dictionaries with ``type`` and ``object`` keys.
        """
        ns = self._namespace(namespace)
        target = self.describe(name, ns)
        function, kwargs = self.list_call(ns)
        watcher = watch.Watch()
        stream = watcher.stream(
            function,
            field_selector=f"metadata.name={name}",
            timeout_seconds=max(1, math.ceil(timeout)),
            **kwargs,
        )
        logger.debug(f"Watching {target} for {timeout} seconds")

        try:
            while True:
                event = await self._call("watching", target, next, stream, None)
                if event is None:
                    logger.debug(f"Watch of {target} ended")
                    return
                yield event
        finally:
            watcher.stop()
            try:
                # Releases the HTTP connection now rather than on the next event
                stream.close()
            except ValueError:
                # Still reading in a worker thread after a cancellation; stop() ends it on the next event
                logger.debug(f"Watch of {target} still running, stopped on its next event")
