import copy
import logging
from typing import Dict
from typing import List
from typing import Optional

from idpyoidc.configure import Base

from mdqservice.defaults import DEFAULT_MDQ_CONFIG
from mdqservice.exception import ConfigurationError
from mdqservice.exception import InvalidAlgorithm
from mdqservice.message import SelectionProfile
from mdqservice.transform import hash_entity_id

logger = logging.getLogger(__name__)


def _non_negative_int(name, value):
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigurationError(f"{name} must be a non negative integer")
    return value


class MDQConfiguration(Base):
    """MDQ service configuration"""
    uris = []

    def __init__(self,
                 conf: Optional[Dict] = None,
                 entity_conf: Optional[List[dict]] = None,
                 base_path: str = '',
                 file_attributes: Optional[List[str]] = None,
                 domain: Optional[str] = "",
                 port: Optional[int] = 0,
                 dir_attributes: Optional[List[str]] = None,
                 ):
        conf = copy.deepcopy(conf or {})
        Base.__init__(self, conf=conf, base_path=base_path, file_attributes=file_attributes,
                      dir_attributes=dir_attributes, domain=domain, port=port)

        def _get(key):
            return copy.deepcopy(conf.get(key, DEFAULT_MDQ_CONFIG[key]))

        self.language = _get("language")
        self.fallback_language = _get("fallback_language")
        self.negative_cache_ttl = _non_negative_int("negative_cache_ttl",
                                                    _get("negative_cache_ttl"))
        self.search_max_results = _non_negative_int("search_max_results",
                                                    _get("search_max_results"))

        _sets = _get("metadata_sets")
        if not isinstance(_sets, list) or not _sets or not all(isinstance(s, str) for s in _sets):
            raise ConfigurationError("metadata_sets must be a list of metadata set names")
        self.metadata_sets = list(_sets)

        _profiles = _get("entity_selection_profiles") or {}
        if not isinstance(_profiles, dict):
            raise ConfigurationError("entity_selection_profiles must be a dictionary")
        for name, profile in _profiles.items():
            try:
                SelectionProfile(**profile).verify()
            except Exception as err:
                raise ConfigurationError(f"Bad entity selection profile {name}: {err}")
        self.entity_selection_profiles = _profiles

        self.selection_profile_attribute = _get("selection_profile_attribute")

        _alg = _get("hash_algorithm")
        try:
            hash_entity_id("", _alg)
        except InvalidAlgorithm as err:
            raise ConfigurationError(str(err))
        self.hash_algorithm = _alg

        _hosted = _get("hosted_sps") or []
        for sp in _hosted:
            if not isinstance(sp, dict) or not (sp.get("entityID") or sp.get("entityid")):
                raise ConfigurationError("hosted_sps entries need an entityID")
        self.hosted_sps = _hosted

        _cache = _get("cache")
        if not isinstance(_cache, dict):
            raise ConfigurationError("cache must be a dictionary")
        self.cache = _cache

        self.metadata = _get("metadata")
