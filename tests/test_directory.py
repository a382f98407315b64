import json
import tempfile
import unittest
from pathlib import Path

from objstore_browser.directory import SiteDirectory
from objstore_browser.models import AccessKey, Site


class SiteDirectoryTests(unittest.TestCase):
    def _write(self, tmp, payload):
        path = Path(tmp) / "sites.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        return SiteDirectory(path)

    def test_lists_sites_and_access_keys(self):
        with tempfile.TemporaryDirectory() as tmp:
            directory = self._write(
                tmp,
                [
                    {
                        "id": "is1a",
                        "display_name": "Ishikari 1",
                        "endpoint": "https://s3.is1a.example",
                        "access_keys": ["AK1", {"id": "AK2", "created_at": "2024-01-01T00:00:00Z"}],
                    },
                    {"id": "tk1", "endpoint": "https://s3.tk1.example"},
                ],
            )

            self.assertEqual(
                [
                    Site("is1a", "Ishikari 1", "https://s3.is1a.example"),
                    Site("tk1", "tk1", "https://s3.tk1.example"),
                ],
                directory.list_sites(),
            )
            self.assertEqual(
                [AccessKey("AK1", "is1a"), AccessKey("AK2", "is1a", "2024-01-01T00:00:00Z")],
                directory.list_access_keys("is1a"),
            )
            self.assertEqual([], directory.list_access_keys("tk1"))
            self.assertEqual([], directory.list_access_keys("missing"))

    def test_skips_malformed_entries(self):
        with tempfile.TemporaryDirectory() as tmp:
            directory = self._write(
                tmp,
                [
                    {"display_name": "no id"},
                    "garbage",
                    {"id": "is1a", "endpoint": "https://s3.example", "access_keys": ["", 7, {"id": ""}, "AK1"]},
                ],
            )

            self.assertEqual([Site("is1a", "is1a", "https://s3.example")], directory.list_sites())
            self.assertEqual([AccessKey("AK1", "is1a")], directory.list_access_keys("is1a"))

    def test_missing_or_invalid_file_is_empty(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "sites.json"
            self.assertEqual([], SiteDirectory(path).list_sites())

            path.write_text("not json", encoding="utf-8")
            self.assertEqual([], SiteDirectory(path).list_sites())


if __name__ == "__main__":
    unittest.main()
