import os
import unittest
from pathlib import Path


class TwistSuiteRunner(unittest.TestCase):
    """Lets ``python -m unittest`` drive the pytest suite."""

    def test_twist_suite(self) -> None:
        if "PYTEST_CURRENT_TEST" in os.environ:
            self.skipTest("already running under pytest")
        import pytest

        result = pytest.main(["-q", str(Path(__file__).resolve().parent)])
        self.assertEqual(result, 0)
