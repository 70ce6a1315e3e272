"""Tests for CLI entrypoint wiring."""

from __future__ import annotations

import io
import unittest
from contextlib import redirect_stdout
from unittest.mock import patch

from threadterm.__main__ import main


class MainEntrypointTests(unittest.TestCase):
    """Validate top-level main() behavior."""

    def test_main_ensures_config_and_runs_app(self) -> None:
        with patch("threadterm.__main__.ensure_config_dir") as ensure_mock, patch(
            "threadterm.__main__.ThreadTermApp"
        ) as app_cls_mock:
            app_instance = app_cls_mock.return_value
            main([])
            ensure_mock.assert_called_once()
            app_cls_mock.assert_called_once_with(channel_id=None)
            app_instance.run.assert_called_once()

    def test_channel_flag_is_forwarded(self) -> None:
        with patch("threadterm.__main__.ensure_config_dir"), patch(
            "threadterm.__main__.ThreadTermApp"
        ) as app_cls_mock:
            main(["--channel", "random"])
            app_cls_mock.assert_called_once_with(channel_id="random")

    def test_version_flag_prints_and_skips_app(self) -> None:
        buffer = io.StringIO()
        with patch("threadterm.__main__.ThreadTermApp") as app_cls_mock, redirect_stdout(
            buffer
        ):
            main(["--version"])
        self.assertTrue(buffer.getvalue().startswith("threadterm "))
        app_cls_mock.assert_not_called()


if __name__ == "__main__":
    unittest.main()
