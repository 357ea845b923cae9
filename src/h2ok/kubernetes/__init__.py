"""Kubernetes client module for h2ok.

This module handles all interactions with the Kubernetes API.
"""

import logging

from h2ok.kubernetes.base import KubernetesResource
from h2ok.kubernetes.connection import KubernetesConnection
from h2ok.kubernetes.resources.crds import CustomResourceDefinitionResource
from h2ok.kubernetes.resources.h2os import H2OResource
from h2ok.kubernetes.resources.ingresses import IngressResource
from h2ok.kubernetes.resources.services import ServiceResource
from h2ok.kubernetes.resources.statefulsets import StatefulSetResource

logger = logging.getLogger(__name__)

__all__ = [
    "KubernetesConnection",
    "KubernetesResource",
    "CustomResourceDefinitionResource",
    "H2OResource",
    "IngressResource",
    "ServiceResource",
    "StatefulSetResource",
]
