"""Deployment descriptor persistence.

A descriptor is written after a successful deployment and read back to
undeploy or expose the cluster without re-specifying it.
"""

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError

from h2ok.errors import DescriptorError
from h2ok.models import ClusterIdentity

logger = logging.getLogger(__name__)

DESCRIPTOR_SUFFIX = ".h2ok"


class DeploymentDescriptor(BaseModel):
    """Name and namespace of a deployed H2O cluster."""

    model_config = ConfigDict(frozen=True)

    name: str
    namespace: str

    @classmethod
    def from_identity(cls, identity: ClusterIdentity) -> "DeploymentDescriptor":
        if not identity.namespace:
            raise DescriptorError(f"Cluster {identity.name} has no namespace resolved")
        return cls(name=identity.name, namespace=identity.namespace)

    def to_identity(self) -> ClusterIdentity:
        return ClusterIdentity(name=self.name, namespace=self.namespace)

    def default_path(self, directory: Path | None = None) -> Path:
        """Path of the descriptor file inside ``directory`` (current directory if None)."""
        return (directory or Path.cwd()) / f"{self.name}{DESCRIPTOR_SUFFIX}"

    def save(self, path: Path) -> Path:
        """Write the descriptor to ``path``.

        Returns:
            The path written to.
        """
        try:
            path.write_text(self.model_dump_json(indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            raise DescriptorError(f"Unable to write deployment descriptor {path}: {e}") from e
        logger.debug(f"Saved deployment descriptor for {self.namespace}/{self.name} to {path}")
        return path

    @classmethod
    def load(cls, path: Path) -> "DeploymentDescriptor":
        """Read a descriptor previously written by save."""
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise DescriptorError(f"Unable to read deployment descriptor {path}: {e}") from e

        try:
            return cls.model_validate_json(content)
        except ValidationError as e:
            raise DescriptorError(f"Invalid deployment descriptor {path}: {e}") from e
