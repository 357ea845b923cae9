"""Configuration module for h2ok.

This module handles the configuration of h2ok through environment variables.
"""
import os

from pydantic import BaseModel, Field, field_validator

DEFAULT_IMAGE_REPOSITORY = "h2oai/h2o-open-source-k8s"


class H2OKConfig(BaseModel):
    """Configuration class for h2ok.

    Attributes:
        namespace: Namespace to deploy to. If None, the kubeconfig default is used.
        kubeconfig: Path to a kubeconfig file. If None, well-known locations are used.
        image_repository: Docker repository of the official H2O image, tagged with the cluster version.
        crd_timeout: Seconds to wait for the H2O custom resource definition to be accepted.
        ingress_timeout: Seconds to wait for an ingress to be assigned an address.
    """
    namespace: str | None = Field(default=None)
    kubeconfig: str | None = Field(default=None)
    image_repository: str = Field(default=DEFAULT_IMAGE_REPOSITORY)
    crd_timeout: float = Field(default=30)
    ingress_timeout: float = Field(default=120)

    @field_validator("crd_timeout", "ingress_timeout")
    def validate_timeout(cls, v):
        """Validate that timeouts are positive"""
        if v <= 0:
            raise ValueError("Timeout must be greater than zero")
        return v

    @field_validator("image_repository")
    def validate_image_repository(cls, v):
        """Validate that the image repository is not blank"""
        if not v.strip():
            raise ValueError("Image repository must not be empty")
        return v

    @classmethod
    def from_env(cls):
        """Create a config instance from environment variables."""
        return cls(
            namespace=os.getenv("H2OK_NAMESPACE") or None,
            kubeconfig=os.getenv("H2OK_KUBECONFIG") or None,
            image_repository=os.getenv("H2OK_IMAGE_REPOSITORY", DEFAULT_IMAGE_REPOSITORY),
            crd_timeout=float(os.getenv("H2OK_CRD_TIMEOUT", "30")),
            ingress_timeout=float(os.getenv("H2OK_INGRESS_TIMEOUT", "120")),
        )
