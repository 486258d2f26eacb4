"""Key/value caches used by the MDQ service.

The cache is the only state shared between requests. Values must be JSON
serializable, ``None`` is a legal value (it is used for negative results) so
absence is signalled by returning the caller's default.
"""
import json
import logging
import os
import threading
from typing import Any
from typing import Optional
from typing import Union

from cryptojwt.jwt import utc_time_sans_frac
from cryptojwt.utils import as_bytes
from cryptojwt.utils import as_unicode
from cryptojwt.utils import b64e
from idpyoidc.storage.abfile import AbstractFileSystem
from idpyoidc.util import instantiate

from mdqservice.defaults import CACHE_TYPES
from mdqservice.defaults import DEFAULT_CACHE_CONFIG
from mdqservice.exception import ConfigurationError

logger = logging.getLogger(__name__)

NAMESPACE = 'mdqservice+mdq'


class MDQCache(object):
    """Narrow cache interface: get/set/has/delete with optional TTL."""

    def __init__(self, default_ttl: Optional[int] = 0, **kwargs):
        self.default_ttl = default_ttl or 0

    def expires_at(self, ttl: Optional[int] = None) -> int:
        """
        :param ttl: Seconds to live, None means the default lifetime
        :return: Absolute expiry time, 0 if the item never expires
        """
        if ttl is None:
            ttl = self.default_ttl
        if not ttl:
            return 0
        return utc_time_sans_frac() + ttl

    @staticmethod
    def expired(exp: int) -> bool:
        return bool(exp) and utc_time_sans_frac() >= exp

    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError()

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        raise NotImplementedError()

    def has(self, key: str) -> bool:
        _missing = object()
        return self.get(key, _missing) is not _missing

    def delete(self, key: str) -> bool:
        raise NotImplementedError()

    def clear(self) -> bool:
        raise NotImplementedError()

    def __contains__(self, item):
        return self.has(item)


class MemoryCache(MDQCache):
    """In process cache. Shared between threads, not between processes."""

    def __init__(self, default_ttl: Optional[int] = 0, **kwargs):
        MDQCache.__init__(self, default_ttl=default_ttl)
        self._db = {}
        self._lock = threading.Lock()
        self._purged_at = 0

    def _purge(self):
        """Drop expired items, at most once a second."""
        _now = utc_time_sans_frac()
        if _now == self._purged_at:
            return
        self._purged_at = _now
        for key in [k for k, (_, exp) in self._db.items() if exp and _now >= exp]:
            del self._db[key]

    def get(self, key, default=None):
        with self._lock:
            try:
                value, exp = self._db[key]
            except KeyError:
                return default
            if self.expired(exp):
                del self._db[key]
                return default
            return value

    def set(self, key, value, ttl=None):
        with self._lock:
            self._purge()
            self._db[key] = (value, self.expires_at(ttl))
        return True

    def delete(self, key):
        with self._lock:
            self._db.pop(key, None)
        return True

    def clear(self):
        with self._lock:
            self._db = {}
        return True

    def __len__(self):
        return len(self._db)


class FileSystemCache(MDQCache):
    """
    Cache kept in a directory, one file per key. Built on idpyoidc's
    AbstractFileSystem which serializes writers with file locks, so several
    worker processes can share one directory.
    """

    def __init__(self, fdir: Optional[str] = '', default_ttl: Optional[int] = 0, **kwargs):
        MDQCache.__init__(self, default_ttl=default_ttl)
        if not fdir:
            raise ConfigurationError('fdir must be a directory')
        self.fdir = fdir
        self._db = AbstractFileSystem(fdir=fdir,
                                      key_conv="idpyoidc.util.QPKey",
                                      value_conv="idpyoidc.util.JSON")

    @staticmethod
    def _file_key(key: str) -> str:
        # url safe base64 survives the quote_plus key conversion unchanged
        return as_unicode(b64e(as_bytes(key)))

    def get(self, key, default=None):
        _file_key = self._file_key(key)
        if not os.path.isfile(os.path.join(self.fdir, _file_key)):
            # plain miss
            return default
        try:
            _item = self._db.get(_file_key)
        except (OSError, ValueError) as err:
            logger.warning(f"Cache read of {key} failed: {err}")
            return default

        if not isinstance(_item, dict) or "value" not in _item:
            return default
        if self.expired(_item.get("exp", 0)):
            self.delete(key)
            return default
        return _item["value"]

    def set(self, key, value, ttl=None):
        try:
            self._db[self._file_key(key)] = {"value": value, "exp": self.expires_at(ttl)}
        except (OSError, TypeError, ValueError) as err:
            logger.warning(f"Cache write of {key} failed: {err}")
            return False
        return True

    def delete(self, key):
        try:
            del self._db[self._file_key(key)]
        except KeyError:
            pass
        except OSError as err:
            logger.warning(f"Cache delete of {key} failed: {err}")
            return False
        return True

    def clear(self):
        try:
            self._db.clear()
        except OSError as err:
            logger.warning(f"Cache clear failed: {err}")
            return False
        return True


class KeyValueCache(MDQCache):
    """
    Cache backed by an external key/value service (memcached, redis, ...).

    The client must offer ``get(key)``, ``set(key, value, <ttl_argument>=ttl)``
    and ``delete(key)``. Any error raised by the client is logged and the
    operation is treated as a miss.
    """

    def __init__(self,
                 client: Optional[Any] = None,
                 client_class: Optional[str] = '',
                 client_kwargs: Optional[dict] = None,
                 prefix: Optional[str] = '',
                 ttl_argument: Optional[str] = 'expire',
                 default_ttl: Optional[int] = 0,
                 **kwargs):
        MDQCache.__init__(self, default_ttl=default_ttl)
        if client is None:
            if not client_class:
                raise ConfigurationError('A key/value cache needs a client or a client_class')
            client = instantiate(client_class, **(client_kwargs or {}))
        self.client = client
        self.prefix = f"{prefix}{NAMESPACE}:"
        self.ttl_argument = ttl_argument

    def _key(self, key):
        return f"{self.prefix}{key}"

    def get(self, key, default=None):
        try:
            _val = self.client.get(self._key(key))
        except Exception as err:
            logger.warning(f"Key/value cache get of {key} failed: {err}")
            return default

        if _val is None:
            return default
        try:
            return json.loads(as_unicode(_val))["value"]
        except (ValueError, KeyError, TypeError) as err:
            logger.warning(f"Unreadable cache entry for {key}: {err}")
            return default

    def set(self, key, value, ttl=None):
        if ttl is None:
            ttl = self.default_ttl
        _kwargs = {self.ttl_argument: ttl} if ttl else {}
        try:
            self.client.set(self._key(key), json.dumps({"value": value}), **_kwargs)
        except Exception as err:
            logger.warning(f"Key/value cache set of {key} failed: {err}")
            return False
        return True

    def delete(self, key):
        try:
            self.client.delete(self._key(key))
        except Exception as err:
            logger.warning(f"Key/value cache delete of {key} failed: {err}")
            return False
        return True

    def clear(self):
        _flush = getattr(self.client, "flush_all", None) or getattr(self.client, "flushdb", None)
        if _flush is None:
            return False
        try:
            _flush()
        except Exception as err:
            logger.warning(f"Key/value cache clear failed: {err}")
            return False
        return True


class NullCache(MDQCache):
    """Stores nothing. Every reverse lookup becomes a scan."""

    def get(self, key, default=None):
        return default

    def set(self, key, value, ttl=None):
        return True

    def delete(self, key):
        return True

    def clear(self):
        return True


def cache_factory(conf: Optional[Union[dict, MDQCache]] = None) -> MDQCache:
    """
    Create a cache from a configuration dictionary.

    Either ``{"type": "memory"|"filesystem"|"kv"|"none", "default_ttl": N,
    "kwargs": {...}}`` or ``{"class": "dotted.path", "kwargs": {...}}``.
    """
    if isinstance(conf, MDQCache):
        return conf
    if conf is None:
        conf = DEFAULT_CACHE_CONFIG

    _kwargs = dict(conf.get("kwargs", {}))
    if "default_ttl" in conf:
        _kwargs.setdefault("default_ttl", conf["default_ttl"])

    _class = conf.get("class")
    if not _class:
        _type = conf.get("type", "memory")
        try:
            _class = CACHE_TYPES[_type]
        except KeyError:
            raise ConfigurationError(
                f"cache type must be one of {{{','.join(CACHE_TYPES.keys())}}}, not {_type}")
        if _type == "memory":
            logger.info("Using an in-process cache, it is not shared between processes")

    return instantiate(_class, **_kwargs)
