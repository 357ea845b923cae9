"""Tests for the cluster reconciler."""

import unittest
from unittest import mock

from kubernetes import client

from h2ok.config import H2OKConfig
from h2ok.crd import SchemaRegistrar
from h2ok.descriptor import DeploymentDescriptor
from h2ok.errors import H2OKError, InvalidSpecification, PlatformError, WaitTimeout
from h2ok.guard import FINALIZER_NAME, LifecycleState
from h2ok.manifests import build_ingress
from h2ok.models import ClusterIdentity, ClusterSpec, Resources
from h2ok.reconciler import Action, ClusterReconciler

HANDLER_METHODS = ("get", "create", "replace", "patch", "delete", "create_or_replace")


def make_spec(node_count=3, version="3.44.0.3"):
    return ClusterSpec(node_count=node_count, version=version, resources=Resources(cpu=2, memory="4Gi"))


def make_object(spec=None, finalizers=None, deletion_timestamp=None, resource_version="42"):
    """Build an H2O resource as returned by the custom objects API."""
    metadata = {"name": "h2o-test", "namespace": "default", "resourceVersion": resource_version}
    if finalizers is not None:
        metadata["finalizers"] = finalizers
    if deletion_timestamp is not None:
        metadata["deletionTimestamp"] = deletion_timestamp
    return {
        "apiVersion": "h2o.ai/v1",
        "kind": "H2O",
        "metadata": metadata,
        "spec": (spec or make_spec()).to_body(),
    }


class TestClusterReconciler(unittest.IsolatedAsyncioTestCase):
    """Test cases for ClusterReconciler."""

    def setUp(self):
        """Set up test fixtures."""
        self.connection = mock.Mock()
        self.connection.default_namespace = "default"
        self.config = H2OKConfig(crd_timeout=5, ingress_timeout=10)
        self.reconciler = ClusterReconciler(self.connection, self.config)
        self.identity = ClusterIdentity(name="h2o-test", namespace="default")

        # Record the order in which objects are touched across handlers
        self.calls = []
        for attribute in ("h2os", "stateful_sets", "services", "ingresses"):
            handler = getattr(self.reconciler, attribute)
            for method in HANDLER_METHODS:
                setattr(handler, method, mock.AsyncMock(side_effect=self._recorder(attribute, method)))

        self.reconciler.h2os.get.side_effect = None
        self.reconciler.h2os.patch.side_effect = None

        self.registrar = mock.Mock(spec=SchemaRegistrar)
        self.registrar.is_installed.return_value = True
        self.reconciler.registrar = self.registrar

        for event in ("create_deployment_event", "create_teardown_event"):
            patcher = mock.patch(f"h2ok.reconciler.{event}")
            setattr(self, event, patcher.start())
            self.addCleanup(patcher.stop)

    def _recorder(self, handler, method):
        def record(*args, **kwargs):
            self.calls.append((handler, method))
            return mock.DEFAULT

        return record

    def submitted(self):
        return [call for call in self.calls if call[1] == "create_or_replace"]

    async def test_terminating_tears_down_and_releases(self):
        """Test that a deleted resource holding the finalizer is torn down, then released."""
        obj = make_object(finalizers=["other/finalizer", FINALIZER_NAME], deletion_timestamp="2024-01-01T00:00:00Z")
        self.reconciler.h2os.get.return_value = obj
        self.reconciler.h2os.patch.side_effect = self._recorder("h2os", "patch")

        state = await self.reconciler.reconcile(self.identity, None)

        self.assertEqual(state, LifecycleState.RELEASED)
        self.assertEqual(
            self.calls,
            [
                ("ingresses", "delete"),
                ("services", "delete"),
                ("stateful_sets", "delete"),
                ("h2os", "patch"),
            ],
        )
        self.reconciler.ingresses.delete.assert_called_once_with("h2o-test-ingress", "default")
        self.reconciler.services.delete.assert_called_once_with("h2o-test-service", "default")
        self.reconciler.stateful_sets.delete.assert_called_once_with("h2o-test-stateful-set", "default")
        self.reconciler.h2os.patch.assert_called_once_with(
            "h2o-test",
            {"metadata": {"finalizers": ["other/finalizer"], "resourceVersion": "42"}},
            "default",
        )
        self.assertEqual(self.submitted(), [])
        self.create_teardown_event.assert_called_once()
        self.create_deployment_event.assert_not_called()

    async def test_terminating_never_resubmits_on_apply(self):
        """Test that applying a cluster being deleted releases it instead of submitting objects."""
        self.reconciler.h2os.get.return_value = make_object(
            finalizers=[FINALIZER_NAME], deletion_timestamp="2024-01-01T00:00:00Z"
        )

        with self.assertRaises(H2OKError):
            await self.reconciler.apply(self.identity, make_spec())

        self.assertEqual(self.submitted(), [])
        self.reconciler.h2os.replace.assert_not_called()

    async def test_terminating_tolerates_absent_objects(self):
        """Test that objects already gone do not stop the teardown."""
        self.reconciler.h2os.get.return_value = make_object(
            finalizers=[FINALIZER_NAME], deletion_timestamp="2024-01-01T00:00:00Z"
        )
        self.reconciler.services.delete.side_effect = PlatformError("not found", status=404)

        state = await self.reconciler.reconcile(self.identity, None)

        self.assertEqual(state, LifecycleState.RELEASED)
        self.reconciler.stateful_sets.delete.assert_called_once()
        self.reconciler.h2os.patch.assert_called_once()

    async def test_terminating_keeps_finalizer_on_failure(self):
        """Test that the finalizer stays in place if the teardown fails."""
        self.reconciler.h2os.get.return_value = make_object(
            finalizers=[FINALIZER_NAME], deletion_timestamp="2024-01-01T00:00:00Z"
        )
        self.reconciler.stateful_sets.delete.side_effect = PlatformError("forbidden", status=403)

        with self.assertRaises(PlatformError):
            await self.reconciler.reconcile(self.identity, None)

        self.reconciler.h2os.patch.assert_not_called()

    async def test_released_does_nothing(self):
        """Test that a deleted resource without the finalizer is left to the API server."""
        self.reconciler.h2os.get.return_value = make_object(deletion_timestamp="2024-01-01T00:00:00Z")

        state = await self.reconciler.reconcile(self.identity, None)

        self.assertEqual(state, LifecycleState.RELEASED)
        self.assertEqual(self.calls, [])
        self.reconciler.h2os.patch.assert_not_called()

    async def test_fresh_cluster(self):
        """Test that a new cluster is created, guarded, then submitted."""
        spec = make_spec()
        self.reconciler.h2os.get.return_value = None
        self.reconciler.h2os.create.side_effect = None
        self.reconciler.h2os.create.return_value = make_object(spec)
        self.reconciler.h2os.patch.return_value = make_object(spec, finalizers=[FINALIZER_NAME])

        state = await self.reconciler.reconcile(self.identity, spec)

        self.assertEqual(state, LifecycleState.ACTIVE)
        self.registrar.ensure_installed.assert_called_once_with(5)
        self.reconciler.h2os.create.assert_called_once_with(
            {
                "apiVersion": "h2o.ai/v1",
                "kind": "H2O",
                "metadata": {"name": "h2o-test", "namespace": "default"},
                "spec": spec.to_body(),
            },
            "default",
        )
        self.reconciler.h2os.patch.assert_called_once_with(
            "h2o-test", {"metadata": {"finalizers": [FINALIZER_NAME], "resourceVersion": "42"}}, "default"
        )
        self.reconciler.h2os.replace.assert_not_called()
        self.assertEqual(
            self.submitted(),
            [
                ("services", "create_or_replace"),
                ("stateful_sets", "create_or_replace"),
                ("ingresses", "create_or_replace"),
            ],
        )
        stateful_set = self.reconciler.stateful_sets.create_or_replace.call_args.args[0]
        self.assertEqual(stateful_set.spec.replicas, 3)
        self.create_deployment_event.assert_called_once()

    async def test_spec_change_replaces_resource(self):
        """Test that a changed spec is stored before the objects are resubmitted."""
        self.reconciler.h2os.get.return_value = make_object(make_spec(node_count=3), finalizers=[FINALIZER_NAME])
        self.reconciler.h2os.replace.side_effect = lambda name, body, namespace: body
        new_spec = make_spec(node_count=5)

        state = await self.reconciler.reconcile(self.identity, new_spec)

        self.assertEqual(state, LifecycleState.ACTIVE)
        self.reconciler.h2os.patch.assert_not_called()
        name, body, namespace = self.reconciler.h2os.replace.call_args.args
        self.assertEqual((name, namespace), ("h2o-test", "default"))
        self.assertEqual(body["spec"]["nodes"], 5)
        self.assertEqual(body["metadata"]["resourceVersion"], "42")
        stateful_set = self.reconciler.stateful_sets.create_or_replace.call_args.args[0]
        self.assertEqual(stateful_set.spec.replicas, 5)

    async def test_unchanged_spec_is_not_replaced(self):
        """Test that an active cluster with the same spec is only resubmitted."""
        spec = make_spec()
        self.reconciler.h2os.get.return_value = make_object(spec, finalizers=[FINALIZER_NAME])

        state = await self.reconciler.reconcile(self.identity, spec)

        self.assertEqual(state, LifecycleState.ACTIVE)
        self.reconciler.h2os.replace.assert_not_called()
        self.reconciler.h2os.patch.assert_not_called()
        self.assertEqual(len(self.submitted()), 3)

    async def test_stored_spec_is_used_without_desired_spec(self):
        """Test that a pass without a desired spec reconciles the stored one."""
        self.reconciler.h2os.get.return_value = make_object(make_spec(node_count=4), finalizers=[FINALIZER_NAME])

        state = await self.reconciler.reconcile(self.identity, None)

        self.assertEqual(state, LifecycleState.ACTIVE)
        self.registrar.ensure_installed.assert_not_called()
        stateful_set = self.reconciler.stateful_sets.create_or_replace.call_args.args[0]
        self.assertEqual(stateful_set.spec.replicas, 4)

    async def test_invalid_stored_spec(self):
        """Test that a stored spec that does not validate is rejected."""
        obj = make_object(finalizers=[FINALIZER_NAME])
        obj["spec"] = {"nodes": 0}
        self.reconciler.h2os.get.return_value = obj

        with self.assertRaises(InvalidSpecification):
            await self.reconciler.reconcile(self.identity, None)

        self.assertEqual(self.submitted(), [])

    async def test_absent_resource_without_spec(self):
        """Test that leftover objects are removed when the H2O resource is gone."""
        self.reconciler.h2os.get.return_value = None

        state = await self.reconciler.reconcile(self.identity, None)

        self.assertEqual(state, LifecycleState.RELEASED)
        self.reconciler.h2os.create.assert_not_called()
        self.reconciler.stateful_sets.delete.assert_called_once_with("h2o-test-stateful-set", "default")

    async def test_definition_not_installed_without_spec(self):
        """Test that a pass without a spec never installs the custom resource definition."""
        self.registrar.is_installed.return_value = False

        state = await self.reconciler.reconcile(self.identity, None)

        self.assertEqual(state, LifecycleState.RELEASED)
        self.registrar.ensure_installed.assert_not_called()
        self.reconciler.h2os.get.assert_not_called()
        self.reconciler.ingresses.delete.assert_called_once()

    async def test_namespace_resolved_from_connection(self):
        """Test that a missing namespace falls back to the connection's default."""
        self.connection.default_namespace = "team"
        self.reconciler.h2os.get.return_value = None

        await self.reconciler.reconcile(ClusterIdentity(name="h2o-test"), None)

        self.reconciler.h2os.get.assert_called_once_with("h2o-test", "team")

    async def test_apply_returns_descriptor(self):
        """Test that applying a cluster returns its descriptor."""
        spec = make_spec()
        self.reconciler.h2os.get.return_value = make_object(spec, finalizers=[FINALIZER_NAME])

        descriptor = await self.reconciler.apply(ClusterIdentity(name="h2o-test"), spec)

        self.assertEqual(descriptor, DeploymentDescriptor(name="h2o-test", namespace="default"))

    async def test_teardown(self):
        """Test that tearing down deletes the resource, then runs a pass on it."""
        self.reconciler.h2os.get.return_value = make_object(
            finalizers=[FINALIZER_NAME], deletion_timestamp="2024-01-01T00:00:00Z"
        )

        await self.reconciler.teardown(self.identity)

        self.reconciler.h2os.delete.assert_called_once_with("h2o-test", "default")
        self.assertEqual(self.calls[0], ("h2os", "delete"))
        self.reconciler.h2os.patch.assert_called_once()

    async def test_teardown_already_deleted(self):
        """Test that tearing down a deleted cluster still removes leftover objects."""
        self.reconciler.h2os.delete.side_effect = PlatformError("not found", status=404)
        self.reconciler.h2os.get.return_value = None

        await self.reconciler.teardown_descriptor(DeploymentDescriptor(name="h2o-test", namespace="default"))

        self.reconciler.stateful_sets.delete.assert_called_once_with("h2o-test-stateful-set", "default")

    async def test_teardown_error(self):
        """Test that a failing delete is propagated."""
        self.reconciler.h2os.delete.side_effect = PlatformError("forbidden", status=403)

        with self.assertRaises(PlatformError):
            await self.reconciler.teardown(self.identity)

        self.reconciler.h2os.get.assert_not_called()

    async def test_handle(self):
        """Test dispatching the requested action."""
        with mock.patch.object(self.reconciler, "apply", new_callable=mock.AsyncMock) as apply_mock:
            spec = make_spec()
            await self.reconciler.handle(self.identity, spec, Action.APPLY)
            apply_mock.assert_called_once_with(self.identity, spec)

        with mock.patch.object(self.reconciler, "teardown", new_callable=mock.AsyncMock) as teardown_mock:
            self.assertIsNone(await self.reconciler.handle(self.identity, None, Action.TEARDOWN))
            teardown_mock.assert_called_once_with(self.identity)

    async def test_handle_apply_without_spec(self):
        """Test that applying requires a spec."""
        with self.assertRaises(InvalidSpecification):
            await self.reconciler.handle(self.identity, None, Action.APPLY)

    @mock.patch("h2ok.reconciler.waiter.wait_for", new_callable=mock.AsyncMock)
    async def test_expose(self, wait_for_mock):
        """Test that exposing a cluster returns the URL of its ingress."""
        ingress = build_ingress(self.identity)
        ingress.status = client.V1IngressStatus(
            load_balancer=client.V1IngressLoadBalancerStatus(
                ingress=[client.V1IngressLoadBalancerIngress(ip="10.0.0.7")]
            )
        )
        wait_for_mock.return_value = ingress

        url = await self.reconciler.expose(self.identity)

        self.assertEqual(url, "http://10.0.0.7/h2o-test")
        self.reconciler.ingresses.create_or_replace.assert_called_once()
        args, kwargs = wait_for_mock.call_args
        self.assertEqual(args[1], "h2o-test-ingress")
        self.assertEqual(args[3], 10)
        self.assertEqual(kwargs, {"namespace": "default"})
        self.assertFalse(args[2](build_ingress(self.identity)))
        self.assertTrue(args[2](ingress))

    @mock.patch("h2ok.reconciler.waiter.wait_for", new_callable=mock.AsyncMock)
    async def test_expose_explicit_zero_timeout(self, wait_for_mock):
        """Test that an explicit zero timeout is not replaced by the configured one."""
        wait_for_mock.side_effect = WaitTimeout("Ingress default/h2o-test-ingress", 0, 0.0)

        with self.assertRaises(WaitTimeout):
            await self.reconciler.expose(self.identity, timeout=0)

        self.assertEqual(wait_for_mock.call_args.args[3], 0)


if __name__ == "__main__":
    unittest.main()
