SELECTION_PROFILE_ATTRIBUTE = 'https://refeds.org/entity-selection-profile'
ENTITY_CATEGORY = 'http://macedir.org/entity-category'
ENTITY_CATEGORY_SUPPORT = 'http://macedir.org/entity-category-support'
ASSURANCE_CERTIFICATION = 'urn:oasis:names:tc:SAML:attribute:assurance-certification'
HIDE_FROM_DISCOVERY = 'http://refeds.org/category/hide-from-discovery'

# Entity attribute -> disco record key
ENTITY_ATTRIBUTE_MAP = {
    ENTITY_CATEGORY: 'entity_category',
    ASSURANCE_CERTIFICATION: 'assurance_certification',
    ENTITY_CATEGORY_SUPPORT: 'entity_category_support',
}

IDP_HOSTED = 'saml20-idp-hosted'
IDP_REMOTE = 'saml20-idp-remote'
SP_REMOTE = 'saml20-sp-remote'

DEFAULT_METADATA_SETS = [IDP_REMOTE, IDP_HOSTED, SP_REMOTE]

FALLBACK_LANGUAGE = 'en'
DEFAULT_HASH_ALGORITHM = 'sha1'
NEGATIVE_CACHE_TTL = 3600

PYFF_ROLE_PREFIX = '{http://pyff.io/role}'

CACHE_TYPES = {
    "memory": 'mdqservice.cache.MemoryCache',
    "filesystem": 'mdqservice.cache.FileSystemCache',
    "kv": 'mdqservice.cache.KeyValueCache',
    "none": 'mdqservice.cache.NullCache',
}

DEFAULT_CACHE_CONFIG = {
    "type": "memory",
    "default_ttl": 0,
    "kwargs": {}
}

DEFAULT_MDQ_CONFIG = {
    "language": FALLBACK_LANGUAGE,
    "fallback_language": FALLBACK_LANGUAGE,
    "negative_cache_ttl": NEGATIVE_CACHE_TTL,
    "search_max_results": 0,
    "metadata_sets": DEFAULT_METADATA_SETS,
    "entity_selection_profiles": {},
    "selection_profile_attribute": SELECTION_PROFILE_ATTRIBUTE,
    "hash_algorithm": DEFAULT_HASH_ALGORITHM,
    "hosted_sps": [],
    "cache": DEFAULT_CACHE_CONFIG,
    "metadata": None,
}
