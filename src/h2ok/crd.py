"""H2O custom resource definition.

This module defines the ``H2O`` custom resource type and registers it in the
Kubernetes cluster. A freshly created definition is not usable right away:
the API server first has to accept its names, which is reported through the
``NamesAccepted`` condition of the definition's status.
"""

import logging
from enum import Enum

from kubernetes import client

from h2ok import waiter
from h2ok.errors import PlatformError, RegistrationError, WaitTimeout
from h2ok.kubernetes.resources.crds import CustomResourceDefinitionResource
from h2ok.kubernetes.resources.h2os import H2O_GROUP, H2O_KIND, H2O_PLURAL, H2O_SINGULAR, H2O_VERSION
from h2ok.models import MEMORY_PATTERN

logger = logging.getLogger(__name__)

CRD_NAME = f"{H2O_PLURAL}.{H2O_GROUP}"
NAMES_ACCEPTED = "NamesAccepted"


class SchemaInstallationState(str, Enum):
    """Installation state of the H2O custom resource definition, as seen by a registrar."""
    ABSENT = "absent"
    INSTALLING = "installing"
    NAMES_ACCEPTED = "names-accepted"
    TIMED_OUT = "timed-out"
    FAILED = "failed"


def _schema(schema_type: str, **kwargs) -> client.V1JSONSchemaProps:
    return client.V1JSONSchemaProps(type=schema_type, **kwargs)


def build_custom_resource_definition() -> client.V1CustomResourceDefinition:
    """Build the definition of the H2O custom resource.

    The OpenAPI schema mirrors the validation of ClusterSpec, so invalid
    clusters are rejected by the API server as well.
    """
    spec_schema = _schema(
        "object",
        properties={
            "nodes": _schema("integer", minimum=1),
            "version": _schema("string"),
            "customImage": _schema(
                "object",
                properties={"image": _schema("string"), "command": _schema("string")},
                required=["image"],
            ),
            "resources": _schema(
                "object",
                properties={
                    "cpu": _schema("integer", minimum=1),
                    "memory": _schema("string", pattern=MEMORY_PATTERN),
                    "memoryPercentage": _schema("integer", minimum=1, maximum=100),
                },
                required=["cpu", "memory"],
            ),
        },
        one_of=[
            client.V1JSONSchemaProps(required=["version"]),
            client.V1JSONSchemaProps(required=["customImage"]),
        ],
        required=["nodes", "resources"],
    )

    return client.V1CustomResourceDefinition(
        api_version="apiextensions.k8s.io/v1",
        kind="CustomResourceDefinition",
        metadata=client.V1ObjectMeta(name=CRD_NAME),
        spec=client.V1CustomResourceDefinitionSpec(
            group=H2O_GROUP,
            names=client.V1CustomResourceDefinitionNames(
                kind=H2O_KIND,
                plural=H2O_PLURAL,
                singular=H2O_SINGULAR,
                short_names=[H2O_SINGULAR],
            ),
            scope="Namespaced",
            versions=[
                client.V1CustomResourceDefinitionVersion(
                    name=H2O_VERSION,
                    served=True,
                    storage=True,
                    schema=client.V1CustomResourceValidation(
                        open_apiv3_schema=_schema("object", properties={"spec": spec_schema}),
                    ),
                )
            ],
        ),
    )


def names_accepted(crd: client.V1CustomResourceDefinition) -> bool:
    """Return True if the API server reports the definition's names as accepted."""
    if crd.status is None or not crd.status.conditions:
        return False
    return any(c.type == NAMES_ACCEPTED and c.status == "True" for c in crd.status.conditions)


class SchemaRegistrar:
    """Installs, removes and awaits the H2O custom resource definition."""

    def __init__(self, crds: CustomResourceDefinitionResource):
        """Initialize the registrar.

        Args:
            crds: Handler for CustomResourceDefinition resources.
        """
        self.crds = crds
        self.state = SchemaInstallationState.ABSENT

    async def install(self) -> None:
        """Create the H2O custom resource definition.

        The creation is issued when this method returns, but the definition is not
        necessarily usable yet. Use await_ready to wait for it.

        Raises:
            RegistrationError: The definition could not be created.
        """
        self.state = SchemaInstallationState.INSTALLING
        try:
            await self.crds.create(build_custom_resource_definition())
        except PlatformError as e:
            self.state = SchemaInstallationState.FAILED
            raise RegistrationError(f"Unable to install the {CRD_NAME} custom resource definition: {e}") from e

    async def uninstall(self) -> None:
        """Delete the H2O custom resource definition, if present.

        Deleting the definition deletes every H2O resource in the cluster.

        Raises:
            RegistrationError: The definition could not be deleted.
        """
        try:
            await self.crds.delete(CRD_NAME)
        except PlatformError as e:
            if not e.not_found:
                raise RegistrationError(
                    f"Unable to uninstall the {CRD_NAME} custom resource definition: {e}"
                ) from e
            logger.debug(f"Custom resource definition {CRD_NAME} already absent")
        self.state = SchemaInstallationState.ABSENT

    async def is_installed(self) -> bool:
        """Return True if the H2O custom resource definition exists in the cluster."""
        return await self.crds.get(CRD_NAME) is not None

    async def await_ready(self, timeout: float) -> None:
        """Wait for the H2O custom resource definition to be ready.

        Returns immediately if the definition already exists. Otherwise watches it
        until the API server accepts its names.

        Args:
            timeout: Maximum number of seconds to wait.

        Raises:
            RegistrationError: The definition did not become ready in time, or the API failed.
        """
        try:
            installed = await self.is_installed()
        except PlatformError as e:
            self.state = SchemaInstallationState.FAILED
            raise RegistrationError(f"Unable to look up the {CRD_NAME} custom resource definition: {e}") from e

        if installed:
            self.state = SchemaInstallationState.NAMES_ACCEPTED
            return
        await self._await_names_accepted(timeout, fast_path=False)

    async def _await_names_accepted(self, timeout: float, fast_path: bool) -> None:
        try:
            await waiter.wait_for(self.crds, CRD_NAME, names_accepted, timeout, fast_path=fast_path)
        except WaitTimeout as e:
            self.state = SchemaInstallationState.TIMED_OUT
            raise RegistrationError(
                f"H2O custom resource definition not in ready state after {e.elapsed:.0f} seconds"
            ) from e
        except PlatformError as e:
            self.state = SchemaInstallationState.FAILED
            raise RegistrationError(f"Unable to await the {CRD_NAME} custom resource definition: {e}") from e

        self.state = SchemaInstallationState.NAMES_ACCEPTED
        logger.info(f"Custom resource definition {CRD_NAME} is ready")

    async def ensure_installed(self, timeout: float) -> None:
        """Install the H2O custom resource definition if absent and wait for it to be ready.

        Args:
            timeout: Maximum number of seconds to wait for the definition.

        Raises:
            RegistrationError: The definition could not be installed or did not become ready.
        """
        try:
            installed = await self.is_installed()
        except PlatformError as e:
            self.state = SchemaInstallationState.FAILED
            raise RegistrationError(f"Unable to look up the {CRD_NAME} custom resource definition: {e}") from e

        if installed:
            self.state = SchemaInstallationState.NAMES_ACCEPTED
            return

        logger.info(f"Installing custom resource definition {CRD_NAME}")
        try:
            await self.install()
        except RegistrationError as e:
            # Another pass created the definition since it was looked up
            if not (isinstance(e.cause, PlatformError) and e.cause.already_exists):
                raise
            logger.info(f"Custom resource definition {CRD_NAME} already created, waiting for it")
            self.state = SchemaInstallationState.INSTALLING
        # The definition exists as soon as it is created, so wait on its condition instead
        await self._await_names_accepted(timeout, fast_path=True)
