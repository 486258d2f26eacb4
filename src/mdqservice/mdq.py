"""
Metadata Query (MDQ) service.

Implements a discojson style metadata query service with the pyFF search
extensions and the thiss-mdq trustinfo filtering. Output is designed to be
compatible with https://github.com/TheIdentitySelector/thiss-mdq/tree/1.5.8
"""
import logging
import re
from typing import List
from typing import Optional
from typing import Union

from idpyoidc.exception import MissingRequiredAttribute
from idpyoidc.util import instantiate

from mdqservice.cache import MDQCache
from mdqservice.cache import cache_factory
from mdqservice.configure import MDQConfiguration
from mdqservice.defaults import SP_REMOTE
from mdqservice.exception import MetadataUnavailable
from mdqservice.exception import UnknownEntity
from mdqservice.message import SAMLEntity
from mdqservice.metadata_api import DictMetadata
from mdqservice.metadata_api import MetadataProvider
from mdqservice.normalize import DiscoNormalizer
from mdqservice.profile import find_trust_profile
from mdqservice.profile import get_selection_profiles
from mdqservice.transform import IdentifierTransform

logger = logging.getLogger(__name__)

# https://github.com/IdentityPython/pyFF/blob/2.1.3/src/pyff/store.py#L415-L422
SEARCHABLE = [("UIInfo", "DisplayName"), ("name",), ("OrganizationDisplayName",),
              ("OrganizationName",), ("UIInfo", "Keywords"), ("scope",)]


def clean_identifier(identifier: str) -> str:
    """
    Remove a .json suffix and put back a slash in the protocol that an
    intermediary folding 'directories' may have removed.
    """
    identifier = re.sub(r'\.json$', '', identifier)
    return re.sub(r'^(https?):/(?=[^/])', r'\1://', identifier)


def _searchable_values(entity: SAMLEntity, path: tuple) -> list:
    _val = entity.get(path[0])
    for step in path[1:]:
        _val = _val.get(step) if isinstance(_val, dict) else None
    if not _val:
        return []
    if isinstance(_val, dict):
        return list(_val.values())
    if isinstance(_val, list):
        return _val
    return [_val]


def matches_query(entity: SAMLEntity, query: str) -> bool:
    for path in SEARCHABLE:
        for value in _searchable_values(entity, path):
            if isinstance(value, list):
                value = " ".join([str(v) for v in value])
            if query in str(value).lower():
                return True
    return False


class MDQ(object):

    def __init__(self,
                 config: Optional[Union[dict, MDQConfiguration]] = None,
                 metadata: Optional[MetadataProvider] = None,
                 cache: Optional[MDQCache] = None):
        if not isinstance(config, MDQConfiguration):
            config = MDQConfiguration(config or {})
        self.config = config

        if metadata is None:
            if config.metadata:
                metadata = instantiate(config.metadata["class"],
                                       **config.metadata.get("kwargs", {}))
            else:
                metadata = DictMetadata()
        self.metadata = metadata

        self.cache = cache if cache is not None else cache_factory(config.cache)
        self.transformer = IdentifierTransform(self.cache,
                                               entity_ids=self.entity_ids,
                                               negative_ttl=config.negative_cache_ttl,
                                               algorithm=config.hash_algorithm)
        self.normalizer = self.get_normalizer()

    def get_normalizer(self, language: Optional[str] = None) -> DiscoNormalizer:
        return DiscoNormalizer(language=language or self.config.language,
                               fallback_language=self.config.fallback_language,
                               transform=self.transformer.transform,
                               selection_profiles=self.get_selection_profiles)

    def get_selection_profiles(self, entity: SAMLEntity) -> dict:
        return get_selection_profiles(entity,
                                      global_profiles=self.config.entity_selection_profiles,
                                      attribute=self.config.selection_profile_attribute)

    def entity_as_disco_json(self, entity: Union[dict, SAMLEntity],
                             language: Optional[str] = None) -> dict:
        if language and language != self.config.language:
            return self.get_normalizer(language).entity_as_disco_json(entity)
        return self.normalizer.entity_as_disco_json(entity)

    # Metadata access

    def metadata_sp(self) -> dict:
        """Metadata of the locally hosted service providers, entityID -> entity."""
        md = {}
        for sp in self.config.hosted_sps:
            _entity = dict(sp)
            _entity_id = _entity.pop("entityID", None) or _entity["entityid"]
            _entity["entityid"] = _entity_id
            _entity.setdefault("metadata-set", SP_REMOTE)
            _entity.setdefault("metadata-index", _entity_id)
            md[_entity_id] = _entity
        return md

    def raw_metadata_list(self) -> List[dict]:
        """
        All the metadata, hosted service providers first. Very expensive!

        :raises MetadataUnavailable: If the metadata provider fails
        """
        md = list(self.metadata_sp().values())
        for metadata_set in self.config.metadata_sets:
            try:
                _entities = self.metadata.list_entities(metadata_set)
            except Exception as err:
                raise MetadataUnavailable(f"Could not list {metadata_set}: {err}") from err
            for entity in _entities:
                _entity = dict(entity)
                _entity.setdefault("metadata-set", metadata_set)
                md.append(_entity)
        return md

    def metadata_list(self) -> List[SAMLEntity]:
        res = []
        for entity in self.raw_metadata_list():
            _entity = SAMLEntity(**entity)
            try:
                _entity.verify()
            except MissingRequiredAttribute as err:
                logger.warning(f"Skipping unusable entity in {entity.get('metadata-set')}: {err}")
                continue
            res.append(_entity)
        return res

    def entity_ids(self) -> List[str]:
        return [e["entityid"] for e in self.raw_metadata_list() if e.get("entityid")]

    # Identifiers

    def get_transformed_from_entity_id(self, entity_id: str, algorithm: Optional[str] = None) -> str:
        return self.transformer.transform(entity_id, algorithm)

    def get_entity_id_from_transformed(self, identifier: str) -> Optional[str]:
        return self.transformer.resolve(identifier)

    # Single entity

    def find_entity(self, entity_id: str) -> Optional[dict]:
        """Raw metadata for an entityID, None if it isn't known."""
        # this might be cheaper than searching, so do it early
        _sp = self.metadata_sp()
        if entity_id in _sp:
            return _sp[entity_id]

        for metadata_set in self.config.metadata_sets:
            try:
                _entity = self.metadata.get_entity(entity_id, metadata_set)
            except UnknownEntity:
                continue
            except Exception as err:
                raise MetadataUnavailable(f"Could not read {metadata_set}: {err}") from err
            _entity = dict(_entity)
            _entity.setdefault("metadata-set", metadata_set)
            return _entity
        return None

    def get_entity(self, identifier: str, language: Optional[str] = None) -> Optional[dict]:
        """
        Retrieve a specific entity as discojson

        :param identifier: entityID or transformed identifier
        :return: The entity data or None
        """
        entity_id = self.transformer.resolve(identifier)
        if entity_id is None:
            return None
        _entity = self.find_entity(entity_id)
        if _entity is None:
            return None
        return self.entity_as_disco_json(_entity, language)

    def get_entity_with_profile(self,
                                identifier: str,
                                entity_id: str,
                                trust_profile_name: str,
                                language: Optional[str] = None) -> Optional[dict]:
        """
        get_entity() with entity selection profile handling

        :param identifier: entityID or transformed identifier
        :param entity_id: The entity that holds the trust profile
        :param trust_profile_name: The name of the trust profile
        """
        trust_record = self.get_entity(entity_id)
        _resolved = self.transformer.resolve(identifier)
        record = None
        if _resolved is not None:
            _entity = self.find_entity(_resolved)
            if _entity is not None:
                record = self.entity_as_disco_json(_entity, language)

        trust_profile = find_trust_profile(trust_record, trust_profile_name,
                                           transform=self.transformer.transform)
        if trust_profile is None:
            return record
        return trust_profile.evaluate(record, _resolved or identifier)

    def lookup_one(self,
                   identifier: str,
                   entity_id: Optional[str] = None,
                   trust_profile_name: Optional[str] = None,
                   language: Optional[str] = None) -> Optional[dict]:
        identifier = clean_identifier(identifier)
        if entity_id is None or trust_profile_name is None:
            data = self.get_entity(identifier, language)
        else:
            data = self.get_entity_with_profile(identifier, entity_id, trust_profile_name,
                                                language)
        logger.debug(f"lookup for entity with identifier {identifier} returned "
                     f"{(data or {}).get('entityID', '[NONE]')}")
        return data

    # Many entities

    def search_entities(self,
                        query: Optional[str] = '',
                        entity_filter: Optional[str] = '',
                        language: Optional[str] = None) -> List[dict]:
        """
        Search for entities in the metadata

        :param query: Lower case text to look for
        :param entity_filter: Entity type, 'idp' or 'sp'
        :return: The matching entities as discojson
        """
        data = []
        _max = self.config.search_max_results
        for entity in self.metadata_list():
            # quickly get rid of entities that aren't the right type
            if entity_filter and f"-{entity_filter}-" not in entity.get("metadata-set", ""):
                continue
            if query and not matches_query(entity, query):
                continue

            data.append(self.entity_as_disco_json(entity, language))
            if _max and len(data) >= _max:
                break
        return data

    def search_entities_with_profile(self,
                                     query: Optional[str],
                                     entity_filter: Optional[str],
                                     entity_id: str,
                                     trust_profile_name: str,
                                     language: Optional[str] = None) -> List[dict]:
        trust_record = self.get_entity(entity_id)
        data = self.search_entities(query, entity_filter, language)
        trust_profile = find_trust_profile(trust_record, trust_profile_name,
                                           transform=self.transformer.transform)
        if trust_profile is None:
            return data
        return trust_profile.evaluate_all(data, query=query, entity_filter=entity_filter)

    def search(self,
               query: Optional[str] = '',
               entity_filter: Optional[str] = '',
               entity_id: Optional[str] = None,
               trust_profile_name: Optional[str] = None,
               language: Optional[str] = None) -> List[dict]:
        query = (query or '').lower()
        if entity_id is None or trust_profile_name is None:
            data = self.search_entities(query, entity_filter, language)
        else:
            data = self.search_entities_with_profile(query, entity_filter, entity_id,
                                                     trust_profile_name, language)
        logger.debug(f'searching for {entity_filter} entities matching "{query}" '
                     f'returned {len(data)} results')
        return data
