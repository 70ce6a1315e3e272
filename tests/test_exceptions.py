"""Tests for domain exception hierarchy."""

from __future__ import annotations

import unittest

from threadterm.exceptions import (
    ApiConnectionError,
    ApiResponseError,
    ConfigValidationError,
    SendRejectedError,
    ThreadTermError,
    UploadError,
)


class ExceptionHierarchyTests(unittest.TestCase):
    """Validate exception inheritance contract."""

    def test_exception_hierarchy(self) -> None:
        for exc_type in (
            ApiConnectionError,
            ApiResponseError,
            ConfigValidationError,
            SendRejectedError,
            UploadError,
        ):
            with self.subTest(exc_type=exc_type.__name__):
                self.assertTrue(issubclass(exc_type, ThreadTermError))

    def test_response_error_carries_status(self) -> None:
        error = ApiResponseError("not found", status_code=404)
        self.assertEqual(error.status_code, 404)
        self.assertIsNone(ApiResponseError("bad body").status_code)


if __name__ == "__main__":
    unittest.main()
