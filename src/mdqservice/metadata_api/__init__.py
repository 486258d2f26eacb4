import logging
from typing import Dict
from typing import List
from typing import Optional

from mdqservice.exception import UnknownEntity

logger = logging.getLogger(__name__)


class MetadataProvider(object):
    """
    Where the metadata comes from. Refreshing and storing metadata is
    somebody else's business, this is only read access.
    """

    def list_entities(self, metadata_set: str) -> List[dict]:
        raise NotImplementedError()

    def get_entity(self, entity_id: str, metadata_set: str) -> dict:
        """
        :raises UnknownEntity: If there is no such entity in the set
        """
        for entity in self.list_entities(metadata_set):
            if entity.get("entityid") == entity_id:
                return entity
        raise UnknownEntity(f"{entity_id} not in {metadata_set}")


class DictMetadata(MetadataProvider):
    """Metadata held in memory, metadata set -> entityID -> entity."""

    def __init__(self, metadata: Optional[Dict[str, Dict[str, dict]]] = None, **kwargs):
        self.metadata = {}
        for metadata_set, entities in (metadata or {}).items():
            self.add(metadata_set, entities)

    @staticmethod
    def index(metadata_set: str, entities) -> Dict[str, dict]:
        """entityID -> entity, every entity marked with its metadata set."""
        if isinstance(entities, dict):
            entities = list(entities.values())
        _index = {}
        for entity in entities:
            _entity = dict(entity)
            _entity.setdefault("metadata-set", metadata_set)
            _index[_entity["entityid"]] = _entity
        return _index

    def add(self, metadata_set: str, entities):
        _set = dict(self.metadata.get(metadata_set, {}))
        _set.update(self.index(metadata_set, entities))
        self.metadata[metadata_set] = _set

    def list_entities(self, metadata_set):
        return list(self.metadata.get(metadata_set, {}).values())

    def get_entity(self, entity_id, metadata_set):
        try:
            return self.metadata[metadata_set][entity_id]
        except KeyError:
            raise UnknownEntity(f"{entity_id} not in {metadata_set}")
