"""
Unit tests for the wait primitive and error types.
"""

import threading
import unittest
from unittest.mock import patch

from errors import CompletionError, MissingChosenUpdateError, ResultError, UpdaterError
from interfaces import WaitControl


class TestWaitControl(unittest.TestCase):
    """Test WaitControl cancellation and deadlines."""

    def test_unbounded_by_default(self):
        """Test a default control never stops a wait."""
        WaitControl().check("command")

    def test_with_timeout_none(self):
        """Test no timeout means no deadline."""
        control = WaitControl.with_timeout(None)
        self.assertIsNone(control.deadline)
        self.assertIsNone(control.cancel_event)

    @patch("interfaces.time.monotonic", return_value=100.0)
    def test_with_timeout_sets_deadline(self, mock_monotonic):
        """Test the deadline is relative to now."""
        control = WaitControl.with_timeout(30)
        self.assertEqual(control.deadline, 130.0)

    def test_cancelled(self):
        """Test a set event cancels the wait."""
        event = threading.Event()
        control = WaitControl(cancel_event=event)
        control.check("command")

        event.set()
        with self.assertRaises(CompletionError):
            control.check("command")

    @patch("interfaces.time.monotonic", return_value=200.0)
    def test_deadline_passed(self, mock_monotonic):
        """Test an expired deadline stops the wait."""
        with self.assertRaises(CompletionError) as ctx:
            WaitControl(deadline=150.0).check("ssm command cmd-1")
        self.assertIn("cmd-1", str(ctx.exception))


class TestErrors(unittest.TestCase):
    """Test the error hierarchy."""

    def test_all_errors_are_updater_errors(self):
        """Test the CLI can catch every failure with one handler."""
        self.assertTrue(issubclass(ResultError, UpdaterError))
        self.assertTrue(issubclass(UpdaterError, RuntimeError))

    def test_missing_chosen_update_message(self):
        """Test the message names the instance."""
        err = MissingChosenUpdateError("i-1")
        self.assertEqual(err.instance_id, "i-1")
        self.assertIn("i-1", str(err))


if __name__ == "__main__":
    unittest.main()
