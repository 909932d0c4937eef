import json
import urllib.error
from unittest import TestCase, mock

from alumni_fantasy.alumni_types import StorageConfig
from alumni_fantasy.errors import PersistenceExhaustedError
from alumni_fantasy.storage import BlobRef, BlobStore, KVStore, TieredCache, cache_key, sanitize_for_blob


class _Resp:
    def __init__(self, payload=None, raw=None):
        self._payload = payload
        self._raw = raw

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def read(self):
        if self._raw is not None:
            return self._raw
        return json.dumps(self._payload).encode("utf-8")


class _FakeKV:
    def __init__(self, configured=True, existing=None, accept=True):
        self.configured = configured
        self.values = dict(existing or {})
        self.accept = accept
        self.writes = []

    def get(self, key):
        return self.values.get(key)

    def set(self, key, value, ttl_seconds=None):
        if not self.configured or not self.accept:
            return False
        self.writes.append((key, value, ttl_seconds))
        self.values[key] = value
        return True


class _FakeBlob:
    def __init__(self, configured=True, existing=None, accept=True):
        self.configured = configured
        self.values = dict(existing or {})
        self.accept = accept
        self.writes = []

    def head(self, path):
        if path in self.values:
            return BlobRef(url=f"https://blob.test/{path}", pathname=path)
        return None

    def put_json(self, path, value):
        if not self.configured or not self.accept:
            return None
        self.writes.append((path, value))
        self.values[path] = value
        return BlobRef(url=f"https://blob.test/{path}", pathname=path)

    def get_json(self, path):
        return self.values.get(path)


class CacheKeyTest(TestCase):
    def test_cache_key_layout(self):
        self.assertEqual(cache_key("scores", 2025, 3, "ppr", "weekly", None, ""), "scores:2025:3:ppr:weekly")
        self.assertEqual(cache_key("defense", "2025"), "defense:2025")

    def test_sanitize_for_blob(self):
        self.assertEqual(sanitize_for_blob("scores:2025:3:half-ppr:avg"), "alumni/scores/2025/3/half-ppr/avg.json")
        self.assertEqual(sanitize_for_blob("cfb:slate:2024:regular season"), "alumni/cfb/slate/2024/regular-season.json")


class TieredCacheTest(TestCase):
    def test_existing_kv_entry_skips_write(self):
        kv = _FakeKV(existing={"scores:2025:3": {"cached": True}})
        blob = _FakeBlob()
        result = TieredCache(kv=kv, blob=blob).persist("scores:2025:3", {"fresh": True})

        self.assertTrue(result.skipped)
        self.assertFalse(result.stored)
        self.assertEqual(result.backend, "kv")
        self.assertEqual(kv.writes, [])
        self.assertEqual(blob.writes, [])

    def test_existing_blob_entry_skips_write(self):
        kv = _FakeKV()
        blob = _FakeBlob(existing={"alumni/scores/2025/3.json": {}})
        result = TieredCache(kv=kv, blob=blob).persist("scores:2025:3", {"fresh": True})

        self.assertTrue(result.skipped)
        self.assertEqual(result.backend, "blob")
        self.assertEqual(result.url, "https://blob.test/alumni/scores/2025/3.json")
        self.assertEqual(kv.writes, [])

    def test_force_overwrites_existing_entry(self):
        kv = _FakeKV(existing={"scores:2025:3": {"cached": True}})
        result = TieredCache(kv=kv, blob=_FakeBlob(), default_ttl=60).persist("scores:2025:3", {"fresh": True}, force=True)

        self.assertTrue(result.stored)
        self.assertEqual(kv.writes, [("scores:2025:3", {"fresh": True}, 60)])

    def test_unconfigured_kv_falls_through_to_blob(self):
        kv = _FakeKV(configured=False)
        blob = _FakeBlob()
        result = TieredCache(kv=kv, blob=blob).persist("scores:2025:3", {"fresh": True}, ttl=120)

        self.assertEqual(result.backend, "blob")
        self.assertTrue(result.stored)
        self.assertEqual(result.key, "alumni/scores/2025/3.json")
        self.assertEqual(blob.writes, [("alumni/scores/2025/3.json", {"fresh": True})])

    def test_both_tiers_failing_raises(self):
        cache = TieredCache(kv=_FakeKV(accept=False), blob=_FakeBlob(configured=False))
        with self.assertRaises(PersistenceExhaustedError) as ctx:
            cache.persist("scores:2025:3", {"fresh": True})
        self.assertEqual(ctx.exception.errors, ["kv_write_failed", "blob_unconfigured"])

    def test_read_prefers_kv_then_blob(self):
        kv = _FakeKV(existing={"a:2025": {"tier": "kv"}})
        blob = _FakeBlob(existing={"alumni/a/2025.json": {"tier": "blob"}, "alumni/b/2025.json": {"tier": "blob"}})
        cache = TieredCache(kv=kv, blob=blob)

        self.assertEqual(cache.read("a:2025"), {"tier": "kv"})
        self.assertEqual(cache.read("b:2025"), {"tier": "blob"})
        self.assertIsNone(cache.read("c:2025"))

    def test_from_config_with_nothing_configured(self):
        cache = TieredCache.from_config(StorageConfig())
        self.assertFalse(cache.kv.configured)
        self.assertFalse(cache.blob.configured)
        with self.assertRaises(PersistenceExhaustedError):
            cache.persist("scores:2025:3", {})


class KVStoreTest(TestCase):
    def test_get_decodes_json_result(self):
        store = KVStore("https://kv.test", "token")
        with mock.patch(
            "alumni_fantasy.sources.http.urllib.request.urlopen",
            return_value=_Resp({"result": json.dumps({"school": "Iowa"})}),
        ) as urlopen:
            value = store.get("scores:2025:3")

        self.assertEqual(value, {"school": "Iowa"})
        request = urlopen.call_args[0][0]
        self.assertEqual(request.full_url, "https://kv.test/get/scores%3A2025%3A3")
        self.assertEqual(request.get_header("Authorization"), "Bearer token")

    def test_get_missing_key_is_none(self):
        store = KVStore("https://kv.test", "token")
        with mock.patch("alumni_fantasy.sources.http.urllib.request.urlopen", return_value=_Resp({"result": None})):
            self.assertIsNone(store.get("missing"))

    def test_failures_degrade_to_miss(self):
        store = KVStore("https://kv.test", "token")
        with mock.patch(
            "alumni_fantasy.sources.http.urllib.request.urlopen",
            side_effect=urllib.error.URLError("connection refused"),
        ):
            self.assertIsNone(store.get("scores:2025:3"))
            self.assertFalse(store.set("scores:2025:3", {"a": 1}))

    def test_set_posts_value_and_expiration(self):
        store = KVStore("https://kv.test/", "token")
        with mock.patch("alumni_fantasy.sources.http.urllib.request.urlopen", return_value=_Resp({"result": "OK"})) as urlopen:
            self.assertTrue(store.set("k", {"a": 1}, ttl_seconds=30))

        request = urlopen.call_args[0][0]
        self.assertEqual(request.get_method(), "POST")
        self.assertEqual(json.loads(request.data.decode("utf-8")), {"value": json.dumps({"a": 1}), "expiration": 30})

    def test_unconfigured_store_never_calls_out(self):
        store = KVStore(None, None)
        with mock.patch("alumni_fantasy.sources.http.urllib.request.urlopen") as urlopen:
            self.assertIsNone(store.get("k"))
            self.assertFalse(store.set("k", 1))
        urlopen.assert_not_called()


class BlobStoreTest(TestCase):
    def test_put_json_returns_reference(self):
        store = BlobStore("blob-token", "https://blob.test")
        response = _Resp({"url": "https://cdn.test/alumni/a.json", "pathname": "alumni/a.json"})
        with mock.patch("alumni_fantasy.sources.http.urllib.request.urlopen", return_value=response) as urlopen:
            ref = store.put_json("alumni/a.json", {"x": 1})

        self.assertEqual(ref, BlobRef(url="https://cdn.test/alumni/a.json", pathname="alumni/a.json"))
        request = urlopen.call_args[0][0]
        self.assertEqual(request.get_method(), "PUT")
        self.assertEqual(request.full_url, "https://blob.test/alumni/a.json")

    def test_head_missing_blob_is_none(self):
        store = BlobStore("blob-token", "https://blob.test")
        not_found = urllib.error.HTTPError("https://blob.test/alumni/a.json", 404, "Not Found", None, None)
        with mock.patch("alumni_fantasy.sources.http.urllib.request.urlopen", side_effect=not_found):
            self.assertIsNone(store.head("alumni/a.json"))

    def test_head_existing_blob(self):
        store = BlobStore("blob-token", "https://blob.test")
        with mock.patch("alumni_fantasy.sources.http.urllib.request.urlopen", return_value=_Resp(raw=b"")):
            ref = store.head("alumni/a.json")
        self.assertEqual(ref.pathname, "/alumni/a.json")
