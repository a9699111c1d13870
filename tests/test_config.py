import os
import unittest
from datetime import timedelta
from unittest.mock import patch

from pydantic import ValidationError

from portfolio_api.config import Settings


class TestSettings(unittest.TestCase):
    def _from_env(self, env):
        with patch.dict(os.environ, env, clear=True), patch("portfolio_api.config.load_dotenv"):
            return Settings.from_env()

    def test_reads_environment(self) -> None:
        settings = self._from_env({
            "GITHUB_USERNAME": "alice",
            "GITHUB_TOKEN": "secret",
            "PORT": "9000",
            "CACHE_TTL_SECONDS": "120",
            "PROBE_INTERVAL_SECONDS": "30",
            "LOG_LEVEL": "debug",
        })

        self.assertEqual(settings.github_username, "alice")
        self.assertEqual(settings.github_token, "secret")
        self.assertEqual(settings.port, 9000)
        self.assertEqual(settings.cache_ttl, timedelta(minutes=2))
        self.assertEqual(settings.probe_interval, timedelta(seconds=30))
        self.assertEqual(settings.log_level, "DEBUG")

    def test_defaults(self) -> None:
        settings = self._from_env({"GITHUB_USERNAME": "alice", "GITHUB_TOKEN": "secret"})

        self.assertEqual(settings.port, 8080)
        self.assertEqual(settings.cache_ttl, timedelta(minutes=10))
        self.assertEqual(settings.probe_interval, timedelta(minutes=1))

    def test_missing_token_is_a_warning_not_an_error(self) -> None:
        with self.assertLogs("portfolio_api.config", level="WARNING") as logs:
            settings = self._from_env({"GITHUB_USERNAME": "alice"})

        self.assertIsNone(settings.github_token)
        self.assertIn("GITHUB_TOKEN", logs.output[0])

    def test_missing_username_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self._from_env({})

    def test_unknown_log_level_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self._from_env({"GITHUB_USERNAME": "alice", "GITHUB_TOKEN": "secret", "LOG_LEVEL": "verbose"})
