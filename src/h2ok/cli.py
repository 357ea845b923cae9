"""Command-line interface for h2ok.

This module serves as the entrypoint for the h2ok application.
"""

import argparse
import asyncio
import logging
import re
import sys
from pathlib import Path

from h2ok import __description__, __version__
from h2ok.config import H2OKConfig
from h2ok.descriptor import DeploymentDescriptor
from h2ok.errors import DescriptorError, H2OKError
from h2ok.kubernetes import KubernetesConnection
from h2ok.models import MEMORY_PATTERN, ClusterIdentity, ClusterSpec, CustomImage, Resources
from h2ok.reconciler import ClusterReconciler

DEFAULT_H2O_VERSION = "latest"


def setup_logging(verbose: bool = False) -> None:
    """Set up logging configuration.

    Args:
        verbose: Whether to enable verbose logging.
    """
    log_level = logging.DEBUG if verbose else logging.INFO
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(level=log_level, format=log_format, stream=sys.stdout)


def positive_int(value: str) -> int:
    """Validate user input to be an integer greater than zero."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"'{value}' is not an integer")
    if number < 1:
        raise argparse.ArgumentTypeError("The number provided must be greater than zero")
    return number


def percentage(value: str) -> int:
    """Validate user input to be a percentage within <1,100>."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"'{value}' is not an integer")
    if not 1 <= number <= 100:
        raise argparse.ArgumentTypeError("The number must be within range <1,100>")
    return number


def memory(value: str) -> str:
    """Validate user input against the memory pattern Kubernetes uses."""
    if not re.match(MEMORY_PATTERN, value):
        raise argparse.ArgumentTypeError(
            f"Memory requirement must match the following pattern: {MEMORY_PATTERN}. For example 1Gi or 1024Mi."
        )
    return value


def existing_file(value: str) -> Path:
    """Validate that a file exists under a user-provided path."""
    path = Path(value)
    if not path.is_file():
        raise argparse.ArgumentTypeError(f"Invalid file path: '{value}'")
    return path


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        args: Command-line arguments to parse. If None, sys.argv will be used.

    Returns:
        Parsed arguments.
    """
    parser = argparse.ArgumentParser(prog="h2ok", description=__description__)

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--version", action="version", version=f"h2ok {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    deploy = subparsers.add_parser(
        "deploy",
        help="Deploy an H2O cluster into Kubernetes",
        description=(
            "Deploys an H2O cluster into Kubernetes. Once successfully deployed, a deployment descriptor file "
            "with the cluster name is saved. It can be used to undeploy the cluster or to expose it."
        ),
    )
    deploy.add_argument(
        "-s", "--cluster-size", type=positive_int, required=True, help="Number of H2O nodes in the cluster"
    )
    deploy.add_argument(
        "-c", "--cluster-name",
        help="Name of the H2O cluster deployment. Used as prefix for Kubernetes objects. Generated if not specified.",
    )
    deploy.add_argument(
        "-n", "--namespace",
        help="Kubernetes namespace to deploy to (overrides H2OK_NAMESPACE). If not specified, kubeconfig default "
             "is used.",
    )
    deploy.add_argument(
        "-k", "--kubeconfig", type=existing_file,
        help="Path to a kubeconfig file (overrides H2OK_KUBECONFIG). If not specified, well-known locations "
             "are scanned.",
    )
    deploy.add_argument(
        "-p", "--memory-percentage", type=percentage, default=50,
        help="Memory percentage allocated by H2O inside the container. Defaults to 50%% to make space for XGBoost.",
    )
    deploy.add_argument(
        "-m", "--memory", type=memory, default="1Gi",
        help="Amount of memory allocated by each H2O node, in a format accepted by Kubernetes, e.g. 4Gi.",
    )
    deploy.add_argument("--cpus", type=positive_int, default=1, help="Number of CPUs allocated for each H2O node")
    image = deploy.add_mutually_exclusive_group()
    image.add_argument("--h2o-version", help=f"Tag of the official H2O image. Defaults to '{DEFAULT_H2O_VERSION}'.")
    image.add_argument("--custom-image", help="Custom image with H2O inside, used instead of the official one")
    deploy.add_argument("--custom-command", help="Command to start the custom image with")
    deploy.add_argument(
        "-o", "--output", type=Path,
        help="Directory to write the deployment descriptor to. Defaults to the current directory.",
    )

    undeploy = subparsers.add_parser("undeploy", help="Undeploy an existing H2O cluster from Kubernetes")
    undeploy.add_argument(
        "-f", "--file", type=existing_file,
        help="H2O deployment descriptor file path. If not specified, the path is read from stdin.",
    )
    undeploy.add_argument("-k", "--kubeconfig", type=existing_file, help="Path to a kubeconfig file")

    ingress = subparsers.add_parser("ingress", help="Expose a deployed H2O cluster through an ingress")
    ingress.add_argument(
        "-f", "--file", type=existing_file, required=True, help="H2O deployment descriptor file path"
    )
    ingress.add_argument("-k", "--kubeconfig", type=existing_file, help="Path to a kubeconfig file")
    ingress.add_argument(
        "--timeout", type=positive_int,
        help="Seconds to wait for the ingress to get an address (overrides H2OK_INGRESS_TIMEOUT)",
    )

    parsed = parser.parse_args(args)
    if parsed.command == "deploy" and parsed.custom_command and not parsed.custom_image:
        parser.error("--custom-command requires --custom-image")
    return parsed


def build_spec(parsed_args: argparse.Namespace) -> ClusterSpec:
    """Build the cluster specification from the deploy arguments."""
    custom_image = None
    version = None
    if parsed_args.custom_image:
        custom_image = CustomImage(image=parsed_args.custom_image, command=parsed_args.custom_command)
    else:
        version = parsed_args.h2o_version or DEFAULT_H2O_VERSION

    return ClusterSpec(
        node_count=parsed_args.cluster_size,
        version=version,
        custom_image=custom_image,
        resources=Resources(
            cpu=parsed_args.cpus,
            memory=parsed_args.memory,
            memory_percentage=parsed_args.memory_percentage,
        ),
    )


def read_descriptor_path(stream=None) -> Path:
    """Read a deployment descriptor path from stdin.

    Relative paths are resolved against the current directory.

    Raises:
        DescriptorError: No path was given or no file exists under it.
    """
    content = (stream or sys.stdin).read().strip()
    if not content:
        raise DescriptorError("No deployment descriptor given, use --file or pass its path on stdin")

    path = Path(content)
    if not path.is_absolute():
        path = Path.cwd() / path
    if not path.is_file():
        raise DescriptorError(f"Deployment descriptor {content} is unreachable")
    return path


def main(args: list[str] | None = None) -> int:
    """Main entry point for the h2ok application.

    Args:
        args: Command-line arguments. If None, sys.argv will be used.

    Returns:
        Exit code.
    """
    try:
        parsed_args = parse_args(args)
        setup_logging(parsed_args.verbose)
        logger = logging.getLogger(__name__)

        # Create config from environment variables
        config = H2OKConfig.from_env()

        # Override with command-line arguments
        if parsed_args.kubeconfig:
            config.kubeconfig = str(parsed_args.kubeconfig)
        if getattr(parsed_args, "namespace", None):
            config.namespace = parsed_args.namespace

        if parsed_args.command == "deploy":
            identity = ClusterIdentity.create(name=parsed_args.cluster_name, namespace=config.namespace)
            spec = build_spec(parsed_args)
            logger.info(
                f"Deploying H2O {identity.name}: nodes={spec.node_count}, cpus={spec.resources.cpu}, "
                f"memory={spec.resources.memory}, image={spec.custom_image.image if spec.custom_image else spec.version}"
            )
            reconciler = ClusterReconciler(KubernetesConnection(config.kubeconfig), config)
            descriptor = asyncio.run(reconciler.apply(identity, spec))
            path = descriptor.save(descriptor.default_path(parsed_args.output))
            logger.info(f"Deployed H2O {descriptor.namespace}/{descriptor.name}")
            print(path)

        elif parsed_args.command == "undeploy":
            path = parsed_args.file or read_descriptor_path()
            descriptor = DeploymentDescriptor.load(path)
            reconciler = ClusterReconciler(KubernetesConnection(config.kubeconfig), config)
            asyncio.run(reconciler.teardown_descriptor(descriptor))
            logger.info(f"Undeployed H2O {descriptor.namespace}/{descriptor.name}")

        elif parsed_args.command == "ingress":
            descriptor = DeploymentDescriptor.load(parsed_args.file)
            reconciler = ClusterReconciler(KubernetesConnection(config.kubeconfig), config)
            url = asyncio.run(reconciler.expose(descriptor.to_identity(), parsed_args.timeout))
            print(url)

    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Interrupted by user")
        return 1
    except H2OKError as e:
        logging.getLogger(__name__).error(f"{type(e).__name__}: {e}")
        return 1
    except (RuntimeError, ValueError) as e:
        logging.getLogger(__name__).error(f"Configuration error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
