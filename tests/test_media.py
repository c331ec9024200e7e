from urllib.parse import parse_qs, urlparse

import jwt
import pytest

from timecapsule.errors import AuthenticationError, NotFoundError, StorageError
from google.api_core import exceptions as gcs_exceptions

from timecapsule.media import GCSObjectStore, LocalObjectStore, is_valid_key, make_object_store, new_storage_key


@pytest.fixture
def object_store(settings):
    return LocalObjectStore(settings)


def _token(url):
    return parse_qs(urlparse(url).query)["token"][0]


def test_keys_keep_extension_only():
    key = new_storage_key("holiday.MP4")
    assert key.endswith(".mp4")
    assert is_valid_key(key)
    assert is_valid_key(new_storage_key(None))
    assert "." not in new_storage_key("../../etc/passwd")


@pytest.mark.parametrize("key", ["", "../secret", "abc", "0" * 32 + "/x"])
def test_invalid_keys(object_store, key):
    assert not is_valid_key(key)
    with pytest.raises(NotFoundError):
        object_store.get(key)


def test_put_get_and_list(object_store):
    key = object_store.put(b"hello", "text/plain", "note.txt")
    assert object_store.get(key) == (b"hello", "text/plain")
    assert object_store.keys() == {key}


def test_signed_url_round_trip(object_store):
    key = object_store.put(b"img", "image/png", "a.png")
    url = object_store.signed_url(key)
    assert url.startswith(f"http://testserver/media/{key}?token=")
    assert object_store.read_signed(key, _token(url)) == (b"img", "image/png")


def test_token_for_other_key_rejected(object_store):
    first = object_store.put(b"1", "image/png", "a.png")
    second = object_store.put(b"2", "image/png", "b.png")
    with pytest.raises(AuthenticationError):
        object_store.read_signed(second, _token(object_store.signed_url(first)))


def test_expired_token_rejected(object_store, settings):
    key = object_store.put(b"1", "image/png", "a.png")
    token = jwt.encode({"key": key, "exp": 0}, settings.secret_key, algorithm="HS256")
    with pytest.raises(AuthenticationError):
        object_store.read_signed(key, token)


def test_signed_url_for_unknown_key(object_store):
    with pytest.raises(StorageError):
        object_store.signed_url(new_storage_key("a.png"))


@pytest.mark.parametrize("key", ["", "../etc/passwd", "not-a-key"])
def test_signed_url_for_malformed_key(object_store, key):
    with pytest.raises(StorageError):
        object_store.signed_url(key)


class FakeBlob:
    def __init__(self, bucket, name):
        self.bucket = bucket
        self.name = name
        self.content_type = None

    def upload_from_string(self, data, content_type=None):
        if self.bucket.fail:
            raise gcs_exceptions.ServiceUnavailable("down")
        self.content_type = content_type
        self.bucket.objects[self.name] = (data, content_type)

    def download_as_bytes(self):
        if self.name not in self.bucket.objects:
            raise gcs_exceptions.NotFound("missing")
        data, self.content_type = self.bucket.objects[self.name]
        return data

    def generate_signed_url(self, version, expiration, method):
        return f"https://storage.googleapis.com/{self.bucket.name}/{self.name}?X-Goog-Expires={int(expiration.total_seconds())}&v={version}&m={method}"


class FakeBucket:
    name = "capsules"

    def __init__(self):
        self.objects = {}
        self.fail = False

    def blob(self, name):
        return FakeBlob(self, name)

    def list_blobs(self):
        return [FakeBlob(self, name) for name in self.objects]


class TestGCSObjectStore:
    @pytest.fixture
    def bucket(self):
        return FakeBucket()

    @pytest.fixture
    def gcs(self, settings, bucket):
        return GCSObjectStore(settings, bucket=bucket)

    def test_put_and_get(self, gcs, bucket):
        key = gcs.put(b"clip", "video/mp4", "clip.MP4")
        assert key.endswith(".mp4")
        assert gcs.get(key) == (b"clip", "video/mp4")
        assert gcs.keys() == {key}

    def test_v4_signed_url(self, gcs):
        key = gcs.put(b"img", "image/png", "a.png")
        url = gcs.signed_url(key)
        assert url.startswith(f"https://storage.googleapis.com/capsules/{key}?")
        assert "X-Goog-Expires=1800" in url
        assert "v=v4" in url and "m=GET" in url

    def test_upload_failure_is_storage_error(self, gcs, bucket):
        bucket.fail = True
        with pytest.raises(StorageError):
            gcs.put(b"x", "image/png", "a.png")

    def test_missing_blob(self, gcs):
        with pytest.raises(NotFoundError):
            gcs.get(new_storage_key("a.png"))

    def test_malformed_key(self, gcs):
        with pytest.raises(StorageError):
            gcs.signed_url("../x")


def test_backend_from_settings(settings):
    assert isinstance(make_object_store(settings), LocalObjectStore)
    with pytest.raises(StorageError):
        make_object_store(settings.model_copy(update={"object_store": "gcs"}))
