import unittest
from unittest import mock

from keyring.errors import KeyringError, PasswordDeleteError

from objstore_browser.credentials import (
    CredentialStoreError,
    KeyringCredentialCache,
    flag_saved_secrets,
    select_saved_access_key,
)
from objstore_browser.models import AccessKey


class FakeCredentialCache:
    def __init__(self, secrets=None, flagged=None):
        self.secrets = dict(secrets or {})
        self.flagged = set(flagged or self.secrets)
        self.get_calls = []

    def has_secret(self, site_id, access_key_id):
        return (site_id, access_key_id) in self.flagged

    def get_secret(self, site_id, access_key_id):
        self.get_calls.append(access_key_id)
        return self.secrets.get((site_id, access_key_id), "")


class KeyringCredentialCacheTests(unittest.TestCase):
    def setUp(self):
        patcher = mock.patch("objstore_browser.credentials.keyring")
        self.keyring = patcher.start()
        self.addCleanup(patcher.stop)
        self.cache = KeyringCredentialCache(service_name="test-service")

    def test_get_secret_reads_scoped_account(self):
        self.keyring.get_password.return_value = "secret"

        self.assertEqual("secret", self.cache.get_secret("is1a", "AK1"))
        self.assertTrue(self.cache.has_secret("is1a", "AK1"))
        self.keyring.get_password.assert_called_with("test-service", "objectstorage/is1a/AK1")

    def test_missing_secret_is_not_an_error(self):
        self.keyring.get_password.return_value = None

        self.assertEqual("", self.cache.get_secret("is1a", "AK1"))
        self.assertFalse(self.cache.has_secret("is1a", "AK1"))

    def test_backend_failure_on_read_reports_missing(self):
        self.keyring.get_password.side_effect = KeyringError("no backend")

        self.assertEqual("", self.cache.get_secret("is1a", "AK1"))
        self.assertFalse(self.cache.has_secret("is1a", "AK1"))

    def test_save_secret_overwrites_entry(self):
        self.cache.save_secret("is1a", "AK1", "new")

        self.keyring.set_password.assert_called_once_with("test-service", "objectstorage/is1a/AK1", "new")

    def test_save_secret_rejects_empty_value(self):
        with self.assertRaises(ValueError):
            self.cache.save_secret("is1a", "AK1", "")
        self.keyring.set_password.assert_not_called()

    def test_save_secret_wraps_backend_errors(self):
        self.keyring.set_password.side_effect = KeyringError("locked")

        with self.assertRaises(CredentialStoreError):
            self.cache.save_secret("is1a", "AK1", "new")

    def test_delete_missing_secret_succeeds(self):
        self.keyring.delete_password.side_effect = PasswordDeleteError("not found")

        self.cache.delete_secret("is1a", "AK1")

        self.keyring.delete_password.assert_called_once_with("test-service", "objectstorage/is1a/AK1")

    def test_delete_secret_wraps_backend_errors(self):
        self.keyring.delete_password.side_effect = KeyringError("locked")

        with self.assertRaises(CredentialStoreError):
            self.cache.delete_secret("is1a", "AK1")


class AutoSelectionTests(unittest.TestCase):
    def setUp(self):
        self.keys = [AccessKey(key_id, "is1a") for key_id in ("K1", "K2", "K3", "K4")]

    def test_flag_saved_secrets_marks_each_key(self):
        cache = FakeCredentialCache({("is1a", "K2"): "s2"})

        flagged = flag_saved_secrets(cache, "is1a", self.keys)

        self.assertEqual([False, True, False, False], [key.has_saved_secret for key in flagged])
        self.assertEqual([], cache.get_calls)

    def test_selects_first_flagged_key_and_stops(self):
        cache = FakeCredentialCache({("is1a", "K2"): "s2", ("is1a", "K3"): "s3"})
        keys = flag_saved_secrets(cache, "is1a", self.keys)

        selection = select_saved_access_key(cache, "is1a", keys)

        self.assertEqual(("K2", "s2"), (selection[0].id, selection[1]))
        self.assertEqual(["K2"], cache.get_calls)

    def test_skips_flagged_key_with_empty_secret(self):
        cache = FakeCredentialCache({("is1a", "K3"): "s3"}, flagged={("is1a", "K2"), ("is1a", "K3"), ("is1a", "K4")})
        keys = flag_saved_secrets(cache, "is1a", self.keys)

        selection = select_saved_access_key(cache, "is1a", keys)

        self.assertEqual("K3", selection[0].id)
        self.assertEqual(["K2", "K3"], cache.get_calls)

    def test_returns_none_without_saved_secrets(self):
        cache = FakeCredentialCache()

        self.assertIsNone(select_saved_access_key(cache, "is1a", flag_saved_secrets(cache, "is1a", self.keys)))


if __name__ == "__main__":
    unittest.main()
