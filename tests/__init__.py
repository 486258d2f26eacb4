import base64
import json
import os

BASE_PATH = os.path.abspath(os.path.dirname(__file__))
METADATA_DIR = os.path.join(BASE_PATH, 'test-metadata')

SELECTION_PROFILE_ATTRIBUTE = 'https://refeds.org/entity-selection-profile'
SIRTFI = 'https://refeds.org/sirtfi'
APP_ID = 'https://myapp.example.org'

SIRTFI_PROFILES = {
    "profiles": {
        "sirtfi": {
            "entities": [
                {"include": True, "match": "assurance_certification", "select": SIRTFI}
            ],
            "strict": True
        }
    }
}


def full_path(local_file):
    return os.path.join(BASE_PATH, local_file)


def encode_profiles(profiles: dict) -> str:
    return base64.b64encode(json.dumps(profiles).encode()).decode()


def hosted_sp(profiles=None, entity_id=APP_ID):
    _sp = {
        "entityID": entity_id,
        "name": {"en": "My Application"},
    }
    if profiles is not None:
        _sp["EntityAttributes"] = {SELECTION_PROFILE_ATTRIBUTE: [encode_profiles(profiles)]}
    return _sp


def mdq_config(**kwargs):
    conf = {
        "language": "af",
        "hosted_sps": [hosted_sp(SIRTFI_PROFILES)],
        "cache": {"type": "memory"},
        "metadata": {
            "class": "mdqservice.metadata_api.fs.FlatFileMetadata",
            "kwargs": {"fdir": METADATA_DIR}
        }
    }
    conf.update(kwargs)
    return conf
