"""
Unit tests for CLI module.
"""

import os
import unittest
from unittest.mock import MagicMock, patch

from cli import build_parser, main
from errors import InventoryError


class TestCLI(unittest.TestCase):
    """Test CLI argument parsing and entry point."""

    @patch.dict(os.environ, {}, clear=True)
    def test_build_parser_creates_parser(self):
        """Test parser is created with expected arguments."""
        parser = build_parser()

        args = parser.parse_args(["--cluster", "test-cluster", "--region", "us-west-2"])

        self.assertEqual(args.cluster, "test-cluster")
        self.assertEqual(args.region, "us-west-2")
        self.assertEqual(args.batch_size, 20)
        self.assertEqual(args.check_timeout, 120)
        self.assertEqual(args.poll_interval, 1.0)
        self.assertIsNone(args.wait_timeout)
        self.assertFalse(args.skip_empty_batches)
        self.assertEqual(args.log_level, "INFO")

    @patch.dict(os.environ, {}, clear=True)
    def test_parser_with_all_options(self):
        """Test parser handles all command-line options."""
        parser = build_parser()

        args = parser.parse_args(
            [
                "--cluster",
                "test-cluster",
                "--region",
                "eu-west-1",
                "--batch-size",
                "50",
                "--check-timeout",
                "300",
                "--poll-interval",
                "2.5",
                "--wait-timeout",
                "600",
                "--skip-empty-batches",
                "--log-level",
                "debug",
                "--log-file",
                "updater.log",
                "--verbose",
            ]
        )

        self.assertEqual(args.cluster, "test-cluster")
        self.assertEqual(args.region, "eu-west-1")
        self.assertEqual(args.batch_size, 50)
        self.assertEqual(args.check_timeout, 300)
        self.assertEqual(args.poll_interval, 2.5)
        self.assertEqual(args.wait_timeout, 600.0)
        self.assertTrue(args.skip_empty_batches)
        self.assertEqual(args.log_level, "DEBUG")
        self.assertEqual(args.log_file, "updater.log")
        self.assertTrue(args.verbose)

    @patch.dict(os.environ, {}, clear=True)
    def test_parser_requires_cluster(self):
        """Test parser requires cluster argument."""
        parser = build_parser()

        with self.assertRaises(SystemExit):
            parser.parse_args(["--region", "us-west-2"])

    @patch.dict(os.environ, {}, clear=True)
    def test_parser_requires_region(self):
        """Test parser requires region argument."""
        parser = build_parser()

        with self.assertRaises(SystemExit):
            parser.parse_args(["--cluster", "test-cluster"])

    @patch.dict(
        os.environ,
        {
            "BOTTLEROCKET_ECS_CLUSTER": "env-cluster",
            "AWS_REGION": "ap-south-1",
            "LOG_LEVEL": "WARNING",
        },
        clear=True,
    )
    def test_parser_reads_environment(self):
        """Test cluster, region and log level fall back to environment variables."""
        args = build_parser().parse_args([])

        self.assertEqual(args.cluster, "env-cluster")
        self.assertEqual(args.region, "ap-south-1")
        self.assertEqual(args.log_level, "WARNING")

    @patch.dict(os.environ, {"BOTTLEROCKET_ECS_CLUSTER": "env-cluster"}, clear=True)
    def test_arguments_override_environment(self):
        """Test command-line arguments win over environment variables."""
        args = build_parser().parse_args(
            ["--cluster", "cli-cluster", "--region", "us-east-1"]
        )
        self.assertEqual(args.cluster, "cli-cluster")

    @patch("cli.UpdateDetector")
    @patch("cli.build_aws_clients")
    @patch("cli.setup_logging")
    def test_main_success(self, mock_setup_logging, mock_build_clients, mock_detector_class):
        """Test main runs the detector and returns 0."""
        ecs_client, ssm_client = MagicMock(), MagicMock()
        mock_build_clients.return_value = (ecs_client, ssm_client)
        mock_detector = MagicMock()
        mock_detector.run.return_value = []
        mock_detector_class.return_value = mock_detector

        result = main(
            ["--cluster", "test-cluster", "--region", "us-west-2", "--poll-interval", "3"]
        )

        self.assertEqual(result, 0)
        mock_build_clients.assert_called_once_with("us-west-2")
        mock_detector.run.assert_called_once_with()
        kwargs = mock_detector_class.call_args[1]
        self.assertEqual(kwargs["cluster"], "test-cluster")
        self.assertEqual(kwargs["batch_size"], 20)
        self.assertEqual(kwargs["check_timeout"], 120)
        self.assertIsNone(kwargs["wait_timeout"])
        self.assertIs(kwargs["inventory"].ecs, ecs_client)
        self.assertIs(kwargs["commands"].ssm, ssm_client)
        self.assertEqual(kwargs["commands"].poll_interval, 3.0)

    @patch("cli.UpdateDetector")
    @patch("cli.build_aws_clients")
    @patch("cli.setup_logging")
    def test_main_returns_failure_exit_code(
        self, mock_setup_logging, mock_build_clients, mock_detector_class
    ):
        """Test main prints the error and returns 1 when detection fails."""
        mock_build_clients.return_value = (MagicMock(), MagicMock())
        mock_detector = MagicMock()
        mock_detector.run.side_effect = InventoryError("cluster not found")
        mock_detector_class.return_value = mock_detector

        with patch("sys.stderr") as mock_stderr:
            result = main(["--cluster", "test-cluster", "--region", "us-west-2"])

        self.assertEqual(result, 1)
        written = "".join(c[0][0] for c in mock_stderr.write.call_args_list)
        self.assertIn("cluster not found", written)

    @patch("cli.build_aws_clients")
    @patch("cli.setup_logging")
    def test_main_rejects_invalid_config(self, mock_setup_logging, mock_build_clients):
        """Test invalid configuration returns 1 without touching AWS."""
        with patch("sys.stderr"):
            result = main(
                ["--cluster", "test-cluster", "--region", "us-west-2", "--batch-size", "0"]
            )

        self.assertEqual(result, 1)
        mock_build_clients.assert_not_called()

    @patch("cli.UpdateDetector")
    @patch("cli.build_aws_clients")
    @patch("cli.setup_logging")
    def test_main_configures_logging(
        self, mock_setup_logging, mock_build_clients, mock_detector_class
    ):
        """Test logging is set up from the parsed arguments."""
        mock_build_clients.return_value = (MagicMock(), MagicMock())
        mock_detector_class.return_value.run.return_value = []

        main(
            [
                "--cluster",
                "test-cluster",
                "--region",
                "us-west-2",
                "--log-level",
                "DEBUG",
                "--log-file",
                "updater.log",
            ]
        )

        mock_setup_logging.assert_called_once_with(
            level="DEBUG", verbose=False, log_file="updater.log"
        )


if __name__ == "__main__":
    unittest.main()
