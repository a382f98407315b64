import unittest
from datetime import datetime

from objstore_browser.ui_utils import (
    format_last_modified,
    format_size,
    preview_kind,
    suggest_download_filename,
)


class UiUtilsTests(unittest.TestCase):
    def test_preview_kind(self):
        self.assertEqual("jsonl", preview_kind("logs/2024/events.jsonl.gz"))
        self.assertEqual("jsonl", preview_kind("dump.JSON.GZ"))
        self.assertEqual("text", preview_kind("docs/README"))
        self.assertEqual("text", preview_kind("docs/readme.rst"))
        self.assertEqual("text", preview_kind("state/terraform.tfstate"))
        self.assertEqual("text", preview_kind("config.yml"))
        self.assertIsNone(preview_kind("images/photo.png"))
        self.assertIsNone(preview_kind("archive.tar.gz"))

    def test_suggest_download_filename(self):
        self.assertEqual("photo.png", suggest_download_filename("images/2024/photo.png"))
        self.assertEqual("top.txt", suggest_download_filename("top.txt"))
        self.assertEqual("download", suggest_download_filename("  "))

    def test_format_size(self):
        self.assertEqual("-", format_size(None))
        self.assertEqual("0 B", format_size(0))
        self.assertEqual("1.5 KB", format_size(1536))
        self.assertEqual("2.0 MB", format_size(2 * 1024 * 1024))

    def test_format_last_modified(self):
        self.assertEqual("-", format_last_modified(None))
        self.assertEqual("2024/05/01 09:08:07", format_last_modified(datetime(2024, 5, 1, 9, 8, 7)))


if __name__ == "__main__":
    unittest.main()
