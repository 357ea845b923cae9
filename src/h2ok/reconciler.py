"""Reconciliation of H2O clusters.

This module drives the Kubernetes objects of an H2O cluster into conformance
with the H2O custom resource describing it. The API server is the only source
of truth: every pass reads the current state and nothing is cached between
passes.
"""

import asyncio
import logging
from enum import Enum
from typing import Any

from h2ok import waiter
from h2ok.config import H2OKConfig
from h2ok.crd import SchemaRegistrar
from h2ok.descriptor import DeploymentDescriptor
from h2ok.errors import H2OKError, InvalidSpecification, PlatformError
from h2ok.guard import LifecycleState, finalizers_with, finalizers_without, lifecycle_state
from h2ok.kubernetes import (
    CustomResourceDefinitionResource,
    H2OResource,
    IngressResource,
    KubernetesConnection,
    KubernetesResource,
    ServiceResource,
    StatefulSetResource,
)
from h2ok.kubernetes.resources.events import create_deployment_event, create_teardown_event
from h2ok.manifests import (
    build_ingress,
    build_service,
    build_stateful_set,
    ingress_ip,
    ingress_name,
    ingress_path,
    service_name,
    stateful_set_name,
)
from h2ok.models import ClusterIdentity, ClusterResource, ClusterSpec

logger = logging.getLogger(__name__)


class Action(str, Enum):
    """Actions a user can request on a cluster."""
    APPLY = "apply"
    TEARDOWN = "teardown"


class ClusterReconciler:
    """Reconciler for H2O clusters.

    Each pass installs the H2O custom resource definition if needed, reads the
    H2O resource and either submits the generated objects or, once a delete has
    been issued, tears them down and releases the resource.
    """

    def __init__(self, connection: KubernetesConnection, config: H2OKConfig):
        """Initialize the reconciler.

        Args:
            connection: The Kubernetes connection to use.
            config: h2ok configuration.
        """
        self.connection = connection
        self.config = config
        self.h2os = H2OResource(connection)
        self.stateful_sets = StatefulSetResource(connection)
        self.services = ServiceResource(connection)
        self.ingresses = IngressResource(connection)
        self.registrar = SchemaRegistrar(CustomResourceDefinitionResource(connection))

    def resolve(self, identity: ClusterIdentity) -> ClusterIdentity:
        """Resolve a missing namespace to the connection's default namespace."""
        return identity.with_namespace(self.connection.default_namespace)

    async def handle(
        self, identity: ClusterIdentity, spec: ClusterSpec | None, action: Action
    ) -> DeploymentDescriptor | None:
        """Apply or tear down a cluster.

        Args:
            identity: Identity of the cluster.
            spec: Desired state of the cluster. Required to apply.
            action: What to do with the cluster.

        Returns:
            The deployment descriptor when applying, None when tearing down.
        """
        if action is Action.APPLY:
            if spec is None:
                raise InvalidSpecification("A cluster specification is required to apply a cluster")
            return await self.apply(identity, spec)

        await self.teardown(identity)
        return None

    async def apply(self, identity: ClusterIdentity, spec: ClusterSpec) -> DeploymentDescriptor:
        """Deploy a cluster, or update an existing one to the given spec.

        Returns:
            The descriptor of the deployed cluster.

        Raises:
            H2OKError: The cluster is being deleted.
        """
        identity = self.resolve(identity)
        state = await self.reconcile(identity, spec)
        if state is not LifecycleState.ACTIVE:
            raise H2OKError(f"H2O {identity.namespace}/{identity.name} is being deleted, unable to apply it")
        return DeploymentDescriptor.from_identity(identity)

    async def teardown(self, identity: ClusterIdentity) -> None:
        """Delete a cluster and every object generated for it.

        The delete only marks the H2O resource for deletion, since it carries the
        h2ok finalizer. The following pass tears the generated objects down and
        removes the finalizer.
        """
        identity = self.resolve(identity)
        logger.info(f"Tearing down H2O {identity.namespace}/{identity.name}")
        try:
            await self.h2os.delete(identity.name, identity.namespace)
        except PlatformError as e:
            if not e.not_found:
                raise
            logger.info(f"H2O {identity.namespace}/{identity.name} already deleted")

        await self.reconcile(identity, None)

    async def teardown_descriptor(self, descriptor: DeploymentDescriptor) -> None:
        """Tear down the cluster a deployment descriptor refers to."""
        await self.teardown(descriptor.to_identity())

    async def reconcile(self, identity: ClusterIdentity, spec: ClusterSpec | None) -> LifecycleState:
        """Run a single reconciliation pass.

        Args:
            identity: Identity of the cluster.
            spec: Desired state of the cluster. If None, the spec stored in the H2O resource is
                used, and the custom resource definition is never installed.

        Returns:
            ACTIVE if the generated objects were submitted, RELEASED if the cluster is gone or on its way out.
        """
        identity = self.resolve(identity)
        name, namespace = identity.name, identity.namespace

        if spec is not None:
            await self.registrar.ensure_installed(self.config.crd_timeout)
        elif not await self.registrar.is_installed():
            logger.info("H2O custom resource definition is not installed, removing leftover objects")
            await self._teardown_objects(identity)
            return LifecycleState.RELEASED

        obj = await self.h2os.get(name, namespace)
        if obj is None:
            if spec is None:
                logger.info(f"H2O {namespace}/{name} does not exist, removing leftover objects")
                await self._teardown_objects(identity)
                return LifecycleState.RELEASED
            obj = await self.h2os.create(self.h2os.build_body(name, namespace, spec.to_body()), namespace)

        resource = ClusterResource.from_object(obj)
        state = lifecycle_state(resource)
        logger.debug(f"H2O {namespace}/{name} is {state.value}")

        if state is LifecycleState.TERMINATING:
            await self._teardown_objects(identity)
            await self._set_finalizers(resource, finalizers_without(resource))
            await self._record_event(create_teardown_event, obj, "H2O cluster torn down")
            logger.info(f"Released H2O {namespace}/{name}")
            return LifecycleState.RELEASED

        if state is LifecycleState.RELEASED:
            logger.info(f"H2O {namespace}/{name} is already released")
            return LifecycleState.RELEASED

        desired = spec if spec is not None else resource.spec
        if desired is None:
            raise InvalidSpecification(f"H2O {namespace}/{name} has no valid spec to reconcile")

        if state is LifecycleState.FRESH:
            obj = await self._set_finalizers(resource, finalizers_with(resource))

        if spec is not None and resource.spec != spec:
            obj = dict(obj, spec=spec.to_body())
            obj = await self.h2os.replace(name, obj, namespace)

        await self._submit_objects(identity, desired)
        await self._record_event(
            create_deployment_event, obj, f"H2O cluster of {desired.node_count} nodes deployed"
        )
        return LifecycleState.ACTIVE

    async def expose(self, identity: ClusterIdentity, timeout: float | None = None) -> str:
        """Make sure the cluster's ingress exists and wait for it to be assigned an address.

        Args:
            identity: Identity of the cluster.
            timeout: Maximum number of seconds to wait. Defaults to the configured ingress timeout.

        Returns:
            The URL the cluster is reachable at.
        """
        identity = self.resolve(identity)
        if timeout is None:
            timeout = self.config.ingress_timeout
        await self.ingresses.create_or_replace(build_ingress(identity), identity.namespace)
        ingress = await waiter.wait_for(
            self.ingresses,
            ingress_name(identity.name),
            lambda i: ingress_ip(i) is not None,
            timeout,
            namespace=identity.namespace,
        )
        return f"http://{ingress_ip(ingress)}{ingress_path(ingress)}"

    async def _submit_objects(self, identity: ClusterIdentity, spec: ClusterSpec) -> None:
        """Create or replace the generated objects, one after the other."""
        namespace = identity.namespace
        await self.services.create_or_replace(build_service(identity), namespace)
        await self.stateful_sets.create_or_replace(
            build_stateful_set(identity, spec, self.config.image_repository), namespace
        )
        await self.ingresses.create_or_replace(build_ingress(identity), namespace)
        logger.info(f"Submitted H2O {namespace}/{identity.name} with {spec.node_count} nodes")

    async def _teardown_objects(self, identity: ClusterIdentity) -> None:
        """Delete the generated objects. Objects already absent are skipped."""
        namespace = identity.namespace
        await self._delete_if_exists(self.ingresses, ingress_name(identity.name), namespace)
        await self._delete_if_exists(self.services, service_name(identity.name), namespace)
        await self._delete_if_exists(self.stateful_sets, stateful_set_name(identity.name), namespace)

    async def _delete_if_exists(self, handler: KubernetesResource, name: str, namespace: str) -> None:
        try:
            await handler.delete(name, namespace)
        except PlatformError as e:
            if not e.not_found:
                raise
            logger.debug(f"{handler.describe(name, namespace)} already absent")

    async def _set_finalizers(self, resource: ClusterResource, finalizers: list[str]) -> dict[str, Any]:
        # The resource version makes the patch fail if the resource changed since it was read
        metadata: dict[str, Any] = {"finalizers": finalizers}
        if resource.resource_version:
            metadata["resourceVersion"] = resource.resource_version
        return await self.h2os.patch(resource.identity.name, {"metadata": metadata}, resource.identity.namespace)

    async def _record_event(self, event_creator, obj: dict[str, Any], message: str) -> None:
        await asyncio.to_thread(event_creator, self.connection, obj, message)
