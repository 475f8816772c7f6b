"""
Unit tests for the R2 article store, using botocore's Stubber instead of a live bucket
"""
import datetime
import io

import pytest
from botocore.response import StreamingBody
from botocore.stub import Stubber

import core
import storage

SETTINGS = {
    "endpoint": "https://account.r2.cloudflarestorage.com",
    "bucket": "cloud-r2",
    "region": "auto",
    "access_key": "test-access",
    "secret_key": "test-secret",
    "force_path_style": True,
    "prefix": "articles",
}

NOW = datetime.datetime(2024, 5, 1, 12, 0, 0, tzinfo=datetime.timezone.utc)


@pytest.fixture
def store():
    return storage.store_from_settings(SETTINGS)


@pytest.fixture
def stubber(store):
    with Stubber(store.client) as stub:
        yield stub
        stub.assert_no_pending_responses()


def _obj(key, minutes, size=100):
    return {"Key": key, "Size": size, "LastModified": NOW + datetime.timedelta(minutes=minutes)}


class TestConfiguration:
    def test_disabled_when_settings_missing(self):
        assert storage.store_from_settings({**SETTINGS, "secret_key": ""}) is None
        assert storage.store_from_settings({**SETTINGS, "bucket": ""}) is None

    def test_store_from_settings(self, store):
        assert store.bucket == "cloud-r2"
        assert store.prefix == "articles"
        assert store.client.meta.endpoint_url == SETTINGS["endpoint"]

    def test_default_prefix(self):
        assert storage.store_from_settings({**SETTINGS, "prefix": ""}).prefix == "articles"


class TestSave:
    def test_puts_markdown_under_user_prefix(self, store, stubber):
        key = "articles/user-1/2024-05-01T12-00-00-000Z.md"
        stubber.add_response("put_object", {}, {
            "Bucket": "cloud-r2",
            "Key": key,
            "Body": "# 标题".encode("utf-8"),
            "ContentType": "text/markdown; charset=utf-8",
        })
        assert store.save("# 标题", "user-1", now=NOW) == key

    def test_error_is_wrapped(self, store, stubber):
        stubber.add_client_error("put_object", service_error_code="AccessDenied",
                                 service_message="denied", http_status_code=403)
        with pytest.raises(storage.StorageError, match="AccessDenied"):
            store.save("text", "user-1", now=NOW)


class TestListArticles:
    def test_paginates_filters_and_sorts_newest_first(self, store, stubber):
        stubber.add_response("list_objects_v2", {
            "Contents": [_obj("articles/u1/a.md", 1), _obj("articles/u1/notes.txt", 5)],
            "IsTruncated": True,
            "NextContinuationToken": "next",
        }, {"Bucket": "cloud-r2", "Prefix": "articles/u1/"})
        stubber.add_response("list_objects_v2", {
            "Contents": [_obj("articles/u1/b.md", 3, size=2048)],
            "IsTruncated": False,
        }, {"Bucket": "cloud-r2", "Prefix": "articles/u1/", "ContinuationToken": "next"})

        items = store.list_articles("u1")
        assert [i["key"] for i in items] == ["articles/u1/b.md", "articles/u1/a.md"]
        assert items[0]["size"] == 2048
        assert items[0]["owner"] == "u1"

    def test_all_users(self, store, stubber):
        stubber.add_response("list_objects_v2", {
            "Contents": [_obj("articles/u1/a.md", 1), _obj("articles/u2/b.md", 2)],
            "IsTruncated": False,
        }, {"Bucket": "cloud-r2", "Prefix": "articles/"})
        assert [i["owner"] for i in store.list_articles()] == ["u2", "u1"]

    def test_empty_bucket(self, store, stubber):
        stubber.add_response("list_objects_v2", {"IsTruncated": False},
                             {"Bucket": "cloud-r2", "Prefix": "articles/u1/"})
        assert store.list_articles("u1") == []


class TestReadDeleteShare:
    def test_read(self, store, stubber):
        data = "# 你好\n正文".encode("utf-8")
        stubber.add_response("get_object", {"Body": StreamingBody(io.BytesIO(data), len(data))},
                             {"Bucket": "cloud-r2", "Key": "articles/u1/a.md"})
        assert store.read("articles/u1/a.md") == "# 你好\n正文"

    def test_read_missing(self, store, stubber):
        stubber.add_client_error("get_object", service_error_code="NoSuchKey",
                                 service_message="gone", http_status_code=404)
        with pytest.raises(storage.StorageError, match="NoSuchKey"):
            store.read("articles/u1/missing.md")

    def test_delete(self, store, stubber):
        stubber.add_response("delete_object", {}, {"Bucket": "cloud-r2", "Key": "articles/u1/a.md"})
        store.delete("articles/u1/a.md")

    def test_share_url_is_presigned_path_style(self, store):
        url = store.share_url("articles/u1/a.md", expires=3600)
        assert url.startswith(SETTINGS["endpoint"] + "/cloud-r2/articles/u1/a.md?")
        assert "X-Amz-Expires=3600" in url
        assert "X-Amz-Signature=" in url


def test_owns(store):
    assert store.owns("articles/u1/a.md", "u1")
    assert not store.owns("articles/u10/a.md", "u1")
    assert not store.owns("articles/u2/a.md", "u1")


def test_owns_does_not_merge_similar_user_ids(store):
    key = core.make_article_key("auth0|123", now=NOW)
    assert store.owns(key, "auth0|123")
    assert not store.owns(key, "auth0_123")


def test_list_reports_original_owner_id(store, stubber):
    key = core.make_article_key("auth0|123", now=NOW)
    stubber.add_response(
        "list_objects_v2",
        {"Contents": [_obj(key, 1)], "IsTruncated": False},
        {"Bucket": "cloud-r2", "Prefix": "articles/"},
    )
    items = store.list_articles()
    assert items[0]["owner"] == "auth0|123"
