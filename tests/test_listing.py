import unittest

from botocore.exceptions import ClientError, EndpointConnectionError

from objstore_browser.listing import ListingEngine, ListingError, ListingSession
from objstore_browser.models import Credential, ListingPage, ObjectEntry


CREDENTIAL = Credential(site_id="is1a", access_key_id="AK", secret="SK")


def _page(keys, prefixes=(), token="", truncated=False):
    return ListingPage(
        objects=tuple(ObjectEntry(key=key) for key in keys),
        prefixes=tuple(prefixes),
        continuation_token=token,
        is_truncated=truncated,
    )


class FakeService:
    def __init__(self, result=None):
        self.result = result if result is not None else ListingPage()
        self.calls = []

    def list_objects(self, **kwargs):
        self.calls.append(kwargs)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class ListingEngineTests(unittest.TestCase):
    def test_list_page_passes_credential_and_page_size(self):
        service = FakeService(_page(["a"]))
        engine = ListingEngine(service, page_size=100)

        page = engine.list_page(
            CREDENTIAL,
            endpoint_url="https://s3.example",
            bucket_name="bucket-one",
            prefix="docs/",
            continuation_token="t1",
        )

        self.assertEqual(("a",), tuple(entry.key for entry in page.objects))
        self.assertEqual(
            [
                {
                    "endpoint_url": "https://s3.example",
                    "access_key": "AK",
                    "secret_key": "SK",
                    "bucket_name": "bucket-one",
                    "prefix": "docs/",
                    "continuation_token": "t1",
                    "max_keys": 100,
                }
            ],
            service.calls,
        )

    def test_page_size_can_be_overridden_per_call(self):
        service = FakeService()
        engine = ListingEngine(service)

        engine.list_page(CREDENTIAL, endpoint_url="e", bucket_name="b", page_size=25)

        self.assertEqual(25, service.calls[0]["max_keys"])

    def test_authorization_failures_are_classified(self):
        error = ClientError({"Error": {"Code": "SignatureDoesNotMatch", "Message": "bad"}}, "ListObjectsV2")
        engine = ListingEngine(FakeService(error))

        with self.assertRaises(ListingError) as ctx:
            engine.list_page(CREDENTIAL, endpoint_url="e", bucket_name="b")

        self.assertEqual("authorization", ctx.exception.kind)
        self.assertIn("SignatureDoesNotMatch", str(ctx.exception))

    def test_missing_bucket_is_classified(self):
        error = ClientError({"Error": {"Code": "NoSuchBucket", "Message": "gone"}}, "ListObjectsV2")
        engine = ListingEngine(FakeService(error))

        with self.assertRaises(ListingError) as ctx:
            engine.list_page(CREDENTIAL, endpoint_url="e", bucket_name="b")

        self.assertEqual("not_found", ctx.exception.kind)

    def test_transport_failures_are_classified(self):
        engine = ListingEngine(FakeService(EndpointConnectionError(endpoint_url="https://s3.example")))

        with self.assertRaises(ListingError) as ctx:
            engine.list_page(CREDENTIAL, endpoint_url="e", bucket_name="b")

        self.assertEqual("transport", ctx.exception.kind)

    def test_rejects_prefix_without_trailing_slash(self):
        service = FakeService()
        engine = ListingEngine(service)

        with self.assertRaises(ValueError):
            engine.list_page(CREDENTIAL, endpoint_url="e", bucket_name="b", prefix="docs")
        self.assertEqual([], service.calls)


class ListingSessionTests(unittest.TestCase):
    def test_pages_accumulate_in_arrival_order(self):
        session = ListingSession()
        session.reset("bucket-one", "")
        pages = [
            _page(["a", "b"], prefixes=["x/"], token="t1", truncated=True),
            _page(["c"], prefixes=["y/"], token="t2", truncated=True),
            _page(["d", "e"]),
        ]

        session.apply(pages[0], append=False)
        for page in pages[1:]:
            self.assertTrue(session.has_more)
            session.apply(page, append=True)

        self.assertEqual(["a", "b", "c", "d", "e"], [entry.key for entry in session.objects])
        self.assertEqual([], session.prefixes)
        self.assertFalse(session.has_more)
        self.assertEqual("", session.continuation_token)
        self.assertEqual(3, session.pages_loaded)

    def test_load_more_replaces_prefixes(self):
        session = ListingSession()
        session.apply(_page(["a"], prefixes=["x/"], token="t1", truncated=True), append=False)

        session.apply(_page(["b"], prefixes=["y/"], token="t2", truncated=True), append=True)

        self.assertEqual(["y/"], session.prefixes)
        self.assertEqual("t2", session.continuation_token)

    def test_first_page_replaces_previous_objects(self):
        session = ListingSession()
        session.apply(_page(["a"], token="t1", truncated=True), append=False)

        session.apply(_page(["z"]), append=False)

        self.assertEqual(["z"], [entry.key for entry in session.objects])
        self.assertEqual(1, session.pages_loaded)

    def test_truncated_page_without_token_cannot_continue(self):
        session = ListingSession()

        session.apply(_page(["a"], truncated=True), append=False)

        self.assertFalse(session.has_more)

    def test_reset_discards_everything(self):
        session = ListingSession()
        session.apply(_page(["a"], prefixes=["x/"], token="t1", truncated=True), append=False)

        session.reset("bucket-two", "docs/")

        self.assertEqual(("bucket-two", "docs/"), (session.bucket, session.prefix))
        self.assertEqual([], session.objects)
        self.assertEqual([], session.prefixes)
        self.assertEqual("", session.continuation_token)
        self.assertFalse(session.has_more)


if __name__ == "__main__":
    unittest.main()
