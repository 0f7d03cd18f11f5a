import json
import os
import tempfile
import unittest
from unittest.mock import patch

import support  # noqa: F401

import config
from spotify_insights.errors import ConfigurationError
from spotify_insights.session import resolve_client_settings

_CLEAN_ENV = {name: "" for name in config.ENV_OVERRIDES}


def _valid_config(**overrides):
    cfg = json.loads(json.dumps(config.DEFAULT_CONFIG))
    cfg["spotify_client_id"] = "client-123"
    cfg.update(overrides)
    return cfg


class TestValidateConfig(unittest.TestCase):
    def test_defaults_plus_client_id_are_valid(self):
        ok, errors = config.validate_config(_valid_config())
        self.assertTrue(ok, errors)

    def test_missing_client_id(self):
        ok, errors = config.validate_config(_valid_config(spotify_client_id=""))
        self.assertFalse(ok)
        self.assertIn("Missing required field: spotify_client_id", errors)

    def test_redirect_uri_must_be_http(self):
        ok, errors = config.validate_config(_valid_config(spotify_redirect_uri="ftp://example.com/cb"))
        self.assertFalse(ok)
        self.assertTrue(any("spotify_redirect_uri" in e for e in errors))

    def test_numbers_reject_bools_and_out_of_range(self):
        for key, value in [
            ("spotify_request_timeout", True),
            ("spotify_request_timeout", 0),
            ("spotify_expiry_skew", -1),
            ("spotify_handshake_ttl", "600"),
        ]:
            with self.subTest(key=key, value=value):
                ok, errors = config.validate_config(_valid_config(**{key: value}))
                self.assertFalse(ok)
                self.assertTrue(any(key in e for e in errors))

    def test_scopes_must_be_strings(self):
        ok, errors = config.validate_config(_valid_config(spotify_scopes=["user-top-read", 7]))
        self.assertFalse(ok)

    def test_log_level_choices(self):
        ok, _ = config.validate_config(_valid_config(log_level="LOUD"))
        self.assertFalse(ok)


class TestConfigFile(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self._tmp.name, "config.json")
        env = patch.dict(os.environ, _CLEAN_ENV)
        env.start()
        self.addCleanup(env.stop)
        self.addCleanup(self._tmp.cleanup)

    def test_missing_file_gives_defaults(self):
        cfg = config.load_config(self.path)
        self.assertEqual(cfg["spotify_redirect_uri"], "http://127.0.0.1:8888/callback")
        self.assertEqual(cfg["spotify_client_id"], "")

    def test_file_values_win_over_defaults(self):
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({"spotify_client_id": "from-file", "spotify_expiry_skew": 5}, f)

        cfg = config.load_config(self.path)
        self.assertEqual(cfg["spotify_client_id"], "from-file")
        self.assertEqual(cfg["spotify_expiry_skew"], 5)
        self.assertEqual(cfg["log_level"], "INFO")

    def test_non_object_file_is_rejected(self):
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(["nope"], f)
        with self.assertRaises(ValueError):
            config.load_config(self.path)

    def test_environment_overrides_file(self):
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({"spotify_client_id": "from-file"}, f)

        with patch.dict(os.environ, {"SPOTIFY_CLIENT_ID": "from-env", "SPOTIFY_INSIGHTS_LOG_LEVEL": "DEBUG"}):
            cfg = config.load_config(self.path)

        self.assertEqual(cfg["spotify_client_id"], "from-env")
        self.assertEqual(cfg["log_level"], "DEBUG")

    def test_update_validates_before_saving(self):
        ok, message = config.update_config("spotify_expiry_skew", 9999, self.path)
        self.assertFalse(ok)
        self.assertIn("spotify_expiry_skew", message)
        self.assertFalse(os.path.exists(self.path))

        config.save_config(_valid_config(), self.path)
        ok, _ = config.update_config("spotify_expiry_skew", 30, self.path)
        self.assertTrue(ok)
        self.assertEqual(config.get_config_value("spotify_expiry_skew", path=self.path), 30)

    def test_unknown_key(self):
        ok, message = config.update_config("download_format", "mp3", self.path)
        self.assertFalse(ok)
        self.assertIn("Unknown config key", message)

    def test_reset_to_defaults(self):
        config.save_config(_valid_config(log_level="ERROR"), self.path)
        ok, _ = config.reset_to_defaults(self.path)
        self.assertTrue(ok)
        self.assertEqual(config.load_config(self.path)["log_level"], "INFO")


class TestApplyEnvOverrides(unittest.TestCase):
    def test_blank_values_are_ignored(self):
        cfg = config.apply_env_overrides(
            {"spotify_client_id": "keep"}, environ={"SPOTIFY_CLIENT_ID": "  ", "SPOTIFY_REDIRECT_URI": "https://x/cb"}
        )
        self.assertEqual(cfg["spotify_client_id"], "keep")
        self.assertEqual(cfg["spotify_redirect_uri"], "https://x/cb")


class TestResolveClientSettings(unittest.TestCase):
    def test_settings_from_config(self):
        settings = resolve_client_settings(_valid_config(spotify_expiry_skew=5))
        self.assertEqual(settings.client_id, "client-123")
        self.assertEqual(settings.redirect_uri, "http://127.0.0.1:8888/callback")
        self.assertEqual(settings.expiry_skew, 5)

    def test_missing_client_id_is_a_configuration_error(self):
        for value in ["  ", "", None]:
            with self.subTest(value=value):
                with self.assertRaises(ConfigurationError) as ctx:
                    resolve_client_settings(_valid_config(spotify_client_id=value))
                self.assertIn("spotify_client_id is required", str(ctx.exception))
                self.assertIsInstance(ctx.exception.__cause__, ValueError)

    def test_client_id_is_trimmed(self):
        self.assertEqual(resolve_client_settings(_valid_config(spotify_client_id="  abc  ")).client_id, "abc")

    def test_bad_redirect_is_a_configuration_error(self):
        with self.assertRaises(ConfigurationError):
            resolve_client_settings(_valid_config(spotify_redirect_uri="127.0.0.1:8888/callback"))


if __name__ == "__main__":
    unittest.main(verbosity=2)
