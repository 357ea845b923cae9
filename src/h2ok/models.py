"""Specification model for H2O clusters.

This module holds the typed representation of a cluster's desired state, its
identity in Kubernetes and the live H2O custom resource as observed from the
API server. Construction validates the input; every validation failure is
raised as InvalidSpecification.
"""

import logging
import random
import re
import secrets
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from h2ok.errors import InvalidSpecification

logger = logging.getLogger(__name__)

# Kubernetes quantity grammar, as enforced by the API server for memory requests
MEMORY_PATTERN = r"^([+-]?[0-9.]+)([eEinumkKMGTP]*[-+]?[0-9]*)$"
# RFC 1035 label: Services, named after the cluster, must start with a letter
NAME_PATTERN = r"^[a-z]([-a-z0-9]*[a-z0-9])?$"
# StatefulSet pods carry a controller-revision-hash label "<name>-stateful-set-<hash>",
# with a hash of up to 10 characters, and label values are limited to 63 characters
MAX_NAME_LENGTH = 63 - len("-stateful-set") - 11
MAX_UINT32 = 2**32 - 1

_NAME_ADJECTIVES = (
    "agile", "bold", "brave", "calm", "clever", "eager", "fancy", "gentle", "happy", "jolly",
    "keen", "lively", "mighty", "nimble", "proud", "quick", "quiet", "rapid", "shiny", "swift",
)
_NAME_NOUNS = (
    "badger", "bison", "condor", "falcon", "gecko", "heron", "ibex", "jaguar", "koala", "lemur",
    "marten", "newt", "otter", "panda", "quail", "raven", "salmon", "tapir", "walrus", "yak",
)


def generate_name() -> str:
    """Generate a random cluster name, e.g. ``h2o-swift-otter-1f3a``."""
    return f"h2o-{random.choice(_NAME_ADJECTIVES)}-{random.choice(_NAME_NOUNS)}-{secrets.token_hex(2)}"


def _describe_validation_error(error: ValidationError) -> str:
    messages = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"])
        messages.append(f"{location}: {detail['msg']}" if location else detail["msg"])
    return "; ".join(messages)


class _ValidatedModel(BaseModel):
    """Immutable model raising InvalidSpecification instead of pydantic's ValidationError."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def __init__(self, **data: Any):
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise InvalidSpecification(f"Invalid {type(self).__name__}: {_describe_validation_error(e)}") from e


class Resources(_ValidatedModel):
    """Resources allocated by each H2O pod.

    Limits and requests are always set to the same value in order for H2O
    operations to be reproducible.

    Attributes:
        cpu: Number of virtual CPUs allocated to each H2O pod.
        memory: A Kubernetes quantity, e.g. ``4Gi`` or ``1024Mi``.
        memory_percentage: Percentage of the pod memory given to the H2O JVM. Leaves room for XGBoost
            when below 100. If not defined, a default is used.
    """
    cpu: int = Field(gt=0, le=MAX_UINT32)
    memory: str
    memory_percentage: int | None = Field(default=None, ge=1, le=100, alias="memoryPercentage")

    @field_validator("memory")
    def validate_memory(cls, v):
        """Validate memory against the Kubernetes quantity grammar"""
        if not re.match(MEMORY_PATTERN, v):
            raise ValueError(f"Memory must match the pattern {MEMORY_PATTERN}, for example 1Gi or 1024Mi")
        return v


class CustomImage(_ValidatedModel):
    """A user-provided image with H2O inside. The user takes full responsibility for its correctness.

    Attributes:
        image: Full image definition, including repository prefix, image name and tag.
        command: Command to run when the image is started. The image's default is used if None.
    """
    image: str = Field(min_length=1)
    command: str | None = None


class ClusterSpec(_ValidatedModel):
    """Desired state of an H2O cluster.

    Exactly one of ``version`` and ``custom_image`` must be set. The version is
    used as a tag of the official H2O image.
    """
    node_count: int = Field(gt=0, le=MAX_UINT32, alias="nodes")
    version: str | None = Field(default=None, min_length=1)
    custom_image: CustomImage | None = Field(default=None, alias="customImage")
    resources: Resources

    @model_validator(mode="after")
    def validate_image_selection(self):
        """Validate that exactly one of version and custom image is present"""
        if (self.version is None) == (self.custom_image is None):
            raise ValueError("Exactly one of version or customImage must be specified")
        return self

    def to_body(self) -> dict[str, Any]:
        """Return the spec as stored in the H2O custom resource."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_body(cls, body: dict[str, Any]) -> "ClusterSpec":
        """Parse the spec of an H2O custom resource."""
        return cls(**body)


class ClusterIdentity(_ValidatedModel):
    """Name and namespace of an H2O cluster.

    The name is used as a prefix for every Kubernetes object created for the cluster.
    """
    name: str = Field(max_length=MAX_NAME_LENGTH)
    namespace: str | None = None

    @field_validator("name")
    def validate_name(cls, v):
        """Validate that the name is a valid Kubernetes resource name"""
        if not re.match(NAME_PATTERN, v):
            raise ValueError(
                "Name must consist of lower case alphanumeric characters or '-', start with a letter "
                "and end with an alphanumeric character"
            )
        return v

    @classmethod
    def create(
        cls,
        name: str | None = None,
        namespace: str | None = None,
        name_generator: Callable[[], str] = generate_name,
    ) -> "ClusterIdentity":
        """Create an identity, generating a name when none is given.

        Args:
            name: User-provided name, or None.
            namespace: Target namespace, or None for the connection's default.
            name_generator: Called once to produce a name when ``name`` is None.
        """
        return cls(name=name or name_generator(), namespace=namespace)

    def with_namespace(self, default_namespace: str) -> "ClusterIdentity":
        """Return this identity with the namespace resolved to ``default_namespace`` if unset."""
        if self.namespace:
            return self
        return self.model_copy(update={"namespace": default_namespace})


class ClusterResource(BaseModel):
    """The live H2O custom resource as observed from the API server.

    Read-only: every change goes through the Kubernetes API.
    """

    model_config = ConfigDict(frozen=True)

    identity: ClusterIdentity
    # None when the stored spec does not validate anymore
    spec: ClusterSpec | None = None
    deletion_timestamp: str | None = None
    finalizers: tuple[str, ...] = ()
    resource_version: str | None = None

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> "ClusterResource":
        """Build a ClusterResource from an object returned by the custom objects API."""
        metadata = obj.get("metadata") or {}
        # Not re-validated: objects created outside h2ok may use any name the API server accepts
        identity = ClusterIdentity.model_construct(name=metadata["name"], namespace=metadata.get("namespace"))

        spec = None
        try:
            spec = ClusterSpec.from_body(obj.get("spec") or {})
        except InvalidSpecification as e:
            logger.warning(f"H2O {identity.namespace}/{identity.name} has an invalid spec: {e}")

        return cls(
            identity=identity,
            spec=spec,
            deletion_timestamp=metadata.get("deletionTimestamp"),
            finalizers=tuple(metadata.get("finalizers") or ()),
            resource_version=metadata.get("resourceVersion"),
        )
