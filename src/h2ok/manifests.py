"""Manifest generation for H2O clusters.

Builds the Kubernetes objects making up an H2O cluster from its identity and
specification. The builders are pure: the same input always produces an
equal object, and nothing here talks to the API server.

Every H2O node runs in its own pod of a StatefulSet. The nodes find each other
through a headless Service and form a single cluster once the expected number
of nodes has been discovered.
"""

from kubernetes import client

from h2ok.models import ClusterIdentity, ClusterSpec

# Port the H2O REST API listens on
H2O_API_PORT = 54321
# Port of the embedded Kubernetes helper answering the leader readiness probe
H2O_KUBERNETES_API_PORT = 8081
SERVICE_PORT = 80
# Seconds H2O nodes spend looking up their peers before forming a cluster
NODE_LOOKUP_TIMEOUT = 180
DEFAULT_MEMORY_PERCENTAGE = 50
H2O_JAR = "/opt/h2oai/h2o-3/h2o.jar"


def stateful_set_name(name: str) -> str:
    return f"{name}-stateful-set"


def service_name(name: str) -> str:
    return f"{name}-service"


def ingress_name(name: str) -> str:
    return f"{name}-ingress"


def _labels(identity: ClusterIdentity) -> dict[str, str]:
    return {"app": identity.name}


def _image(spec: ClusterSpec, image_repository: str) -> str:
    if spec.custom_image is not None:
        return spec.custom_image.image
    return f"{image_repository}:{spec.version}"


def _command(spec: ClusterSpec) -> list[str] | None:
    if spec.custom_image is not None:
        if spec.custom_image.command is None:
            return None
        return ["/bin/bash", "-c", spec.custom_image.command]

    memory_percentage = spec.resources.memory_percentage or DEFAULT_MEMORY_PERCENTAGE
    return [
        "/bin/bash",
        "-c",
        f"java -XX:+UseContainerSupport -XX:MaxRAMPercentage={memory_percentage} -jar {H2O_JAR}",
    ]


def _environment(identity: ClusterIdentity, spec: ClusterSpec) -> list[client.V1EnvVar]:
    return [
        client.V1EnvVar(
            name="H2O_KUBERNETES_SERVICE_DNS",
            value=f"{service_name(identity.name)}.{identity.namespace}.svc.cluster.local",
        ),
        client.V1EnvVar(name="H2O_NODE_LOOKUP_TIMEOUT", value=str(NODE_LOOKUP_TIMEOUT)),
        client.V1EnvVar(name="H2O_NODE_EXPECTED_COUNT", value=str(spec.node_count)),
        client.V1EnvVar(name="H2O_KUBERNETES_API_PORT", value=str(H2O_KUBERNETES_API_PORT)),
    ]


def _resources(spec: ClusterSpec) -> client.V1ResourceRequirements:
    # Limits equal requests so every node gets the same, non-throttled allocation
    quantities = {"cpu": str(spec.resources.cpu), "memory": spec.resources.memory}
    return client.V1ResourceRequirements(limits=dict(quantities), requests=dict(quantities))


def build_stateful_set(
    identity: ClusterIdentity, spec: ClusterSpec, image_repository: str
) -> client.V1StatefulSet:
    """Build the StatefulSet running the H2O nodes.

    Args:
        identity: Identity of the cluster, with the namespace resolved.
        spec: Desired state of the cluster.
        image_repository: Repository of the official H2O image, used unless the spec has a custom image.

    Returns:
        The StatefulSet with one replica per H2O node.
    """
    container = client.V1Container(
        name=identity.name,
        image=_image(spec, image_repository),
        command=_command(spec),
        ports=[client.V1ContainerPort(container_port=H2O_API_PORT, protocol="TCP")],
        readiness_probe=client.V1Probe(
            http_get=client.V1HTTPGetAction(path="/kubernetes/isLeaderNode", port=H2O_KUBERNETES_API_PORT),
            initial_delay_seconds=5,
            period_seconds=5,
            failure_threshold=1,
        ),
        resources=_resources(spec),
        env=_environment(identity, spec),
    )

    return client.V1StatefulSet(
        api_version="apps/v1",
        kind="StatefulSet",
        metadata=client.V1ObjectMeta(
            name=stateful_set_name(identity.name),
            namespace=identity.namespace,
            labels=_labels(identity),
        ),
        spec=client.V1StatefulSetSpec(
            service_name=service_name(identity.name),
            pod_management_policy="Parallel",
            replicas=spec.node_count,
            selector=client.V1LabelSelector(match_labels=_labels(identity)),
            template=client.V1PodTemplateSpec(
                metadata=client.V1ObjectMeta(labels=_labels(identity)),
                spec=client.V1PodSpec(containers=[container]),
            ),
        ),
    )


def build_service(identity: ClusterIdentity) -> client.V1Service:
    """Build the headless Service used by H2O nodes to discover each other."""
    return client.V1Service(
        api_version="v1",
        kind="Service",
        metadata=client.V1ObjectMeta(
            name=service_name(identity.name),
            namespace=identity.namespace,
            labels=_labels(identity),
        ),
        spec=client.V1ServiceSpec(
            type="ClusterIP",
            cluster_ip="None",
            selector=_labels(identity),
            ports=[client.V1ServicePort(protocol="TCP", port=SERVICE_PORT, target_port=H2O_API_PORT)],
        ),
    )


def build_ingress(identity: ClusterIdentity) -> client.V1Ingress:
    """Build the Ingress exposing the cluster under ``/<name>``."""
    return client.V1Ingress(
        api_version="networking.k8s.io/v1",
        kind="Ingress",
        metadata=client.V1ObjectMeta(
            name=ingress_name(identity.name),
            namespace=identity.namespace,
            labels=_labels(identity),
            annotations={
                "nginx.ingress.kubernetes.io/rewrite-target": "/",
                "traefik.frontend.rule.type": "PathPrefixStrip",
            },
        ),
        spec=client.V1IngressSpec(
            rules=[
                client.V1IngressRule(
                    http=client.V1HTTPIngressRuleValue(
                        paths=[
                            client.V1HTTPIngressPath(
                                path=f"/{identity.name}",
                                path_type="Exact",
                                backend=client.V1IngressBackend(
                                    service=client.V1IngressServiceBackend(
                                        name=service_name(identity.name),
                                        port=client.V1ServiceBackendPort(number=SERVICE_PORT),
                                    )
                                ),
                            )
                        ]
                    )
                )
            ]
        ),
    )


def ingress_ip(ingress: client.V1Ingress) -> str | None:
    """Return the address assigned to an ingress by its load balancer, or None."""
    status = ingress.status
    if status is None or status.load_balancer is None or not status.load_balancer.ingress:
        return None
    entry = status.load_balancer.ingress[-1]
    return entry.ip or entry.hostname


def ingress_path(ingress: client.V1Ingress) -> str | None:
    """Return the path served by an ingress, or None."""
    spec = ingress.spec
    if spec is None or not spec.rules:
        return None
    http = spec.rules[-1].http
    if http is None or not http.paths:
        return None
    return http.paths[-1].path
