import logging
import os
import shutil

import pytest

from mdqservice import cache as cache_module
from mdqservice.cache import FileSystemCache
from mdqservice.cache import KeyValueCache
from mdqservice.cache import MemoryCache
from mdqservice.cache import NullCache
from mdqservice.cache import cache_factory
from mdqservice.exception import ConfigurationError
from tests import full_path


class DummyClient(object):
    """memcached like client"""

    def __init__(self, fail=False):
        self.db = {}
        self.expire = {}
        self.fail = fail

    def get(self, key):
        if self.fail:
            raise ConnectionError("backend down")
        return self.db.get(key)

    def set(self, key, value, expire=0):
        if self.fail:
            raise ConnectionError("backend down")
        self.db[key] = value
        self.expire[key] = expire
        return True

    def delete(self, key):
        if self.fail:
            raise ConnectionError("backend down")
        self.db.pop(key, None)
        return True


def _exercise(cache):
    assert cache.set('a', 'value')
    assert cache.has('a')
    assert cache.get('a') == 'value'

    assert cache.has('b') is False
    assert cache.get('b') is None
    assert cache.get('b', 'default') == 'default'
    assert cache.has('b') is False

    assert cache.delete('a')
    assert cache.has('a') is False
    assert cache.get('a') is None

    assert cache.delete('b')


def test_memory_cache():
    _exercise(MemoryCache())


def test_memory_cache_none_is_a_value():
    cache = MemoryCache()
    cache.set('{SHA1}0000', None)
    assert cache.has('{SHA1}0000')
    assert cache.get('{SHA1}0000', 'default') is None


def test_memory_cache_expiry(monkeypatch):
    now = [1000]
    monkeypatch.setattr(cache_module, "utc_time_sans_frac", lambda: now[0])

    cache = MemoryCache(default_ttl=60)
    cache.set('short', 1, 10)
    cache.set('default', 2)
    cache.set('forever', 3, 0)

    now[0] = 1011
    assert cache.has('short') is False
    assert cache.get('default') == 2

    now[0] = 1061
    assert cache.get('default') is None
    assert cache.get('forever') == 3


def test_memory_cache_clear():
    cache = MemoryCache()
    cache.set('a', 1)
    cache.set('b', 2)
    assert cache.clear()
    assert len(cache) == 0


class TestFileSystemCache(object):

    @pytest.fixture(autouse=True)
    def create_cache(self):
        self.fdir = full_path('cache')
        if os.path.isdir(self.fdir):
            shutil.rmtree(self.fdir)
        self.cache = FileSystemCache(fdir=self.fdir)
        yield
        shutil.rmtree(self.fdir, ignore_errors=True)

    def test_basic(self):
        _exercise(self.cache)

    def test_transformed_keys(self):
        self.cache.set('{SHA1}a6697b13dcebd5398d2d2d21465ca5a518ba2853', 'https://example.org/idp')
        assert self.cache.get(
            '{SHA1}a6697b13dcebd5398d2d2d21465ca5a518ba2853') == 'https://example.org/idp'

    def test_shared_between_instances(self):
        self.cache.set('https://example.org/idp', {"sha1": "x"})
        other = FileSystemCache(fdir=self.fdir)
        assert other.get('https://example.org/idp') == {"sha1": "x"}

    def test_miss_is_quiet(self, caplog):
        with caplog.at_level(logging.DEBUG):
            assert self.cache.get('{SHA1}c0db10cc2ba093017eb91a54949dc0df9006a643') is None
            assert self.cache.has('https://example.org/idp') is False
        assert [r for r in caplog.records if r.levelno >= logging.WARNING] == []

    def test_negative_entry(self):
        self.cache.set('{SHA1}0000', None, 3600)
        assert self.cache.has('{SHA1}0000')
        assert self.cache.get('{SHA1}0000', 'default') is None

    def test_expiry(self, monkeypatch):
        now = [1000]
        monkeypatch.setattr(cache_module, "utc_time_sans_frac", lambda: now[0])
        self.cache.set('a', 'value', 10)
        assert self.cache.get('a') == 'value'
        now[0] = 1010
        assert self.cache.get('a') is None


def test_file_system_cache_needs_directory():
    with pytest.raises(ConfigurationError, match="fdir must be a directory"):
        FileSystemCache()


def test_key_value_cache():
    client = DummyClient()
    cache = KeyValueCache(client=client, default_ttl=300)
    _exercise(cache)

    cache.set('x', None, 60)
    assert cache.has('x')
    assert client.expire['mdqservice+mdq:x'] == 60
    cache.set('y', 'z')
    assert client.expire['mdqservice+mdq:y'] == 300


def test_key_value_cache_failure_is_a_miss():
    cache = KeyValueCache(client=DummyClient(fail=True))
    assert cache.set('a', 'value') is False
    assert cache.get('a', 'default') == 'default'
    assert cache.has('a') is False
    assert cache.delete('a') is False


def test_key_value_cache_from_class():
    cache = KeyValueCache(client_class='tests.test_01_cache.DummyClient', prefix='test')
    assert isinstance(cache.client, DummyClient)
    cache.set('a', 1)
    assert 'testmdqservice+mdq:a' in cache.client.db


def test_key_value_cache_without_client():
    with pytest.raises(ConfigurationError):
        KeyValueCache()


def test_null_cache():
    cache = NullCache()
    assert cache.set('a', 'value')
    assert cache.has('a') is False
    assert cache.get('a', 'default') == 'default'


def test_factory():
    assert isinstance(cache_factory(), MemoryCache)
    assert isinstance(cache_factory({"type": "none"}), NullCache)

    _cache = cache_factory({"type": "memory", "default_ttl": 30})
    assert _cache.default_ttl == 30

    _cache = cache_factory({"class": "mdqservice.cache.MemoryCache", "kwargs": {"default_ttl": 5}})
    assert isinstance(_cache, MemoryCache)
    assert _cache.default_ttl == 5

    _mem = MemoryCache()
    assert cache_factory(_mem) is _mem


def test_factory_unknown_type():
    with pytest.raises(ConfigurationError, match="cache type must be one of"):
        cache_factory({"type": "unknown"})


def test_factory_file_system_without_directory():
    with pytest.raises(ConfigurationError, match="fdir must be a directory"):
        cache_factory({"type": "filesystem"})


def test_memory_cache_purges_expired(monkeypatch):
    now = [1000]
    monkeypatch.setattr(cache_module, "utc_time_sans_frac", lambda: now[0])

    cache = MemoryCache()
    for i in range(100):
        cache.set(f'{{SHA1}}{i:040x}', None, 1)
    cache.set('forever', 1)
    assert len(cache) == 101

    now[0] = 1002
    cache.set('new', None, 1)
    assert len(cache) == 2
    assert cache.get('forever') == 1
    assert cache.has('new')
