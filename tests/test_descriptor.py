"""Tests for the deployment descriptor."""

import tempfile
import unittest
from pathlib import Path

from h2ok.descriptor import DeploymentDescriptor
from h2ok.errors import DescriptorError
from h2ok.models import ClusterIdentity


class TestDeploymentDescriptor(unittest.TestCase):
    """Test cases for DeploymentDescriptor."""

    def setUp(self):
        """Set up test fixtures."""
        self.tmp = tempfile.TemporaryDirectory()
        self.directory = Path(self.tmp.name)

    def tearDown(self):
        """Tear down test fixtures."""
        self.tmp.cleanup()

    def test_save_and_load(self):
        """Test that a saved descriptor can be read back."""
        descriptor = DeploymentDescriptor(name="h2o-test", namespace="h2o")
        path = descriptor.save(descriptor.default_path(self.directory))

        self.assertEqual(path, self.directory / "h2o-test.h2ok")
        self.assertEqual(DeploymentDescriptor.load(path), descriptor)

    def test_identity_conversion(self):
        """Test conversion from and to a cluster identity."""
        identity = ClusterIdentity(name="h2o-test", namespace="h2o")
        descriptor = DeploymentDescriptor.from_identity(identity)
        self.assertEqual(descriptor.to_identity(), identity)

    def test_from_identity_without_namespace(self):
        """Test that an identity with an unresolved namespace is rejected."""
        with self.assertRaises(DescriptorError):
            DeploymentDescriptor.from_identity(ClusterIdentity(name="h2o-test"))

    def test_load_missing_file(self):
        """Test loading a descriptor that does not exist."""
        with self.assertRaises(DescriptorError):
            DeploymentDescriptor.load(self.directory / "missing.h2ok")

    def test_load_invalid_content(self):
        """Test loading a file that is not a descriptor."""
        path = self.directory / "invalid.h2ok"
        path.write_text('{"name": "h2o-test"}')
        with self.assertRaises(DescriptorError):
            DeploymentDescriptor.load(path)


if __name__ == "__main__":
    unittest.main()
