import hashlib
import logging
import re
from typing import Callable
from typing import Iterable
from typing import Optional

from cryptojwt.utils import as_bytes

from mdqservice.cache import MDQCache
from mdqservice.defaults import DEFAULT_HASH_ALGORITHM
from mdqservice.defaults import NEGATIVE_CACHE_TTL
from mdqservice.exception import InvalidAlgorithm

logger = logging.getLogger(__name__)

TRANSFORMED_ID = re.compile(r'^\{([^}]+)\}(\w+)$')


def parse_transformed(identifier: str) -> Optional[tuple]:
    """
    :param identifier: An entityID or a transformed identifier
    :return: (normalized identifier, hash algorithm) or None if this is not a
        transformed identifier
    """
    _match = TRANSFORMED_ID.match(identifier)
    if not _match:
        return None
    _algorithm, _digest = _match.groups()
    return f"{{{_algorithm.upper()}}}{_digest}", _algorithm.lower()


def hash_entity_id(entity_id: str, algorithm: str = DEFAULT_HASH_ALGORITHM) -> str:
    try:
        return hashlib.new(algorithm.lower(), as_bytes(entity_id)).hexdigest()
    except (ValueError, TypeError):
        # unknown names raise ValueError, variable length digests TypeError
        raise InvalidAlgorithm(f"Invalid hash algorithm: {{{algorithm}}}")


class IdentifierTransform(object):
    """
    Maps entityIDs to transformed identifiers ({ALGO}hexdigest) and back.

    The forward direction is cheap and never cached. The inverse needs a scan
    over all known entities so every forward computation stores the inverse
    mapping in the cache.
    """

    def __init__(self,
                 cache: MDQCache,
                 entity_ids: Optional[Callable[[], Iterable[str]]] = None,
                 negative_ttl: Optional[int] = NEGATIVE_CACHE_TTL,
                 algorithm: Optional[str] = DEFAULT_HASH_ALGORITHM):
        self.cache = cache
        self.entity_ids = entity_ids
        self.negative_ttl = negative_ttl
        self.algorithm = algorithm

    def transform(self, entity_id: str, algorithm: Optional[str] = None) -> str:
        """
        Generate a transformed identifier from an entityID

        :param entity_id: The entityID
        :param algorithm: Hash algorithm, the instance default if not given
        :return: The corresponding transformed identifier
        """
        algorithm = algorithm or self.algorithm
        _transformed = f"{{{algorithm.upper()}}}{hash_entity_id(entity_id, algorithm)}"
        # save the inverse for resolve()
        self.cache.set(_transformed, entity_id)
        return _transformed

    def resolve(self, identifier: str) -> Optional[str]:
        """
        Get an entityID from a transformed identifier. Anything that isn't a
        transformed identifier is returned as is.

        :param identifier: The transformed identifier
        :return: The corresponding entityID or None if no entity matches
        """
        _parsed = parse_transformed(identifier)
        if _parsed is None:
            return identifier

        identifier, algorithm = _parsed
        _missing = object()
        _cached = self.cache.get(identifier, _missing)
        if _cached is not _missing:
            return _cached

        # check the algorithm before spending time on a scan
        hash_entity_id("", algorithm)

        if self.entity_ids is not None:
            for entity_id in self.entity_ids():
                if self.transform(entity_id, algorithm) == identifier:
                    return entity_id

        logger.debug(f"No entity matches {identifier}")
        # save us from searching again for a hash that doesn't exist
        self.cache.set(identifier, None, self.negative_ttl)
        return None
