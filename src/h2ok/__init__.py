__version__ = "0.1.0"
__description__ = (
    "Deploys and tears down H2O clusters in Kubernetes through a custom resource "
    "reconciled into StatefulSets, Services and Ingresses"
)
