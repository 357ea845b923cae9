"""Resources package for Kubernetes resource handlers.

This package contains specialized handlers for different Kubernetes resource types.
"""

from h2ok.kubernetes.resources.events import (
    create_deployment_event,
    create_teardown_event,
)

__all__ = [
    "create_deployment_event",
    "create_teardown_event",
]
