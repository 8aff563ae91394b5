"""
Unit tests for logging utilities.
"""

import logging
import os
import tempfile
import unittest

from log_utils import setup_logging


class TestLogUtils(unittest.TestCase):
    """Test logging utilities."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.log_file = os.path.join(self.tmpdir.name, "node-keeper.log")

    def tearDown(self):
        root = logging.getLogger()
        for handler in list(root.handlers):
            if isinstance(handler, logging.FileHandler):
                root.removeHandler(handler)
                handler.close()
        self.tmpdir.cleanup()

    def test_setup_logging_default(self):
        logger = setup_logging(log_file=self.log_file)
        self.assertIsInstance(logger, logging.Logger)

    def test_kubernetes_client_is_quietened(self):
        setup_logging(verbose=True, log_file=self.log_file)
        self.assertEqual(logging.getLogger("kubernetes").level, logging.WARNING)


if __name__ == "__main__":
    unittest.main()
