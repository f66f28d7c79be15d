from __future__ import annotations

import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from tidymac import config
from tidymac.config import CommandAction, KeepaliveTimings


class ConfigBehaviorTests(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.config_path = Path(tmp.name) / "config.json"
        patcher = mock.patch("tidymac.config.CONFIG_PATH", self.config_path)
        patcher.start()
        self.addCleanup(patcher.stop)
        env = mock.patch.dict(os.environ, {}, clear=False)
        env.start()
        self.addCleanup(env.stop)
        os.environ.pop(config.ENV_SORT_DEFAULT, None)

    def write(self, payload: object) -> None:
        self.config_path.write_text(json.dumps(payload), encoding="utf-8")

    def test_missing_file_gives_defaults(self) -> None:
        settings = config.load_settings()

        self.assertEqual(settings.page_size, 10)
        self.assertEqual(settings.sort_default, "date")
        self.assertEqual(settings.scan_roots, config.DEFAULT_SCAN_ROOTS)
        self.assertEqual(settings.keepalive, KeepaliveTimings())
        self.assertEqual(settings.actions, {})

    def test_malformed_json_is_ignored(self) -> None:
        self.config_path.write_text("{not json", encoding="utf-8")
        self.assertEqual(config.load_config(), {})

    def test_non_object_top_level_is_ignored(self) -> None:
        self.write([1, 2, 3])
        self.assertEqual(config.load_config(), {})

    def test_valid_values_are_loaded(self) -> None:
        self.write(
            {
                "page_size": 15,
                "sort_default": "size",
                "scan_roots": ["/tmp/a"],
                "keepalive": {"interval": 60, "max_retries": 5},
                "actions": {"dns_flush": {"argv": ["dscacheutil", "-flushcache"], "sudo": True}},
            }
        )

        settings = config.load_settings()

        self.assertEqual(settings.page_size, 15)
        self.assertEqual(settings.sort_default, "size")
        self.assertEqual(settings.scan_roots, ("/tmp/a",))
        self.assertEqual(settings.keepalive.interval, 60.0)
        self.assertEqual(settings.keepalive.max_retries, 5)
        self.assertEqual(settings.keepalive.initial_delay, 2.0)
        self.assertEqual(settings.actions, {"dns_flush": CommandAction(("dscacheutil", "-flushcache"), sudo=True)})

    def test_invalid_values_fall_back_per_key(self) -> None:
        self.write(
            {
                "page_size": 0,
                "sort_default": "random",
                "scan_roots": [],
                "keepalive": {"interval": -1, "retry_delay": True, "max_retries": 0},
                "actions": {"bad": {"argv": []}, "worse": "rm", "ok": {"argv": ["true"]}},
            }
        )

        settings = config.load_settings()

        self.assertEqual(settings.page_size, 10)
        self.assertEqual(settings.sort_default, "date")
        self.assertEqual(settings.scan_roots, config.DEFAULT_SCAN_ROOTS)
        self.assertEqual(settings.keepalive, KeepaliveTimings())
        self.assertEqual(list(settings.actions), ["ok"])
        self.assertFalse(settings.actions["ok"].sudo)

    def test_environment_overrides_sort_default(self) -> None:
        self.write({"sort_default": "size"})
        os.environ[config.ENV_SORT_DEFAULT] = "name"

        self.assertEqual(config.load_settings().sort_default, "name")

    def test_env_flag_accepts_common_truthy_values(self) -> None:
        for value, expected in (("1", True), ("true", True), (" YES ", True), ("0", False), ("", False)):
            os.environ["TIDYMAC_TEST_FLAG"] = value
            self.assertEqual(config.env_flag("TIDYMAC_TEST_FLAG"), expected, value)


if __name__ == "__main__":
    unittest.main()
