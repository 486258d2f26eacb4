import json
import logging
import os
import threading
from typing import Optional

from mdqservice.metadata_api import DictMetadata

logger = logging.getLogger(__name__)


def read_info(dir, metadata_set):
    file_name = os.path.join(dir, "{}.json".format(metadata_set))
    if os.path.isfile(file_name):
        with open(file_name) as fp:
            return json.loads(fp.read())
    else:
        return None


class FlatFileMetadata(DictMetadata):
    """
    Metadata in a directory with one JSON file per metadata set, named
    <metadata set>.json . A file holds either a list of entities or an object
    with entityIDs as keys.
    """

    def __init__(self, fdir: Optional[str] = '.', reload: Optional[bool] = False, **kwargs):
        DictMetadata.__init__(self)
        self.fdir = fdir
        self.reload = reload
        self._loaded = set()
        self._lock = threading.Lock()

    def load(self, metadata_set):
        if not os.path.isdir(self.fdir):
            raise FileNotFoundError(f"No metadata directory {self.fdir}")
        _info = read_info(self.fdir, metadata_set)
        if _info is None:
            logger.debug(f"No metadata file for {metadata_set} in {self.fdir}")
            _info = []
        # readers see either the old or the new set, never a partial one
        self.metadata[metadata_set] = self.index(metadata_set, _info)
        self._loaded.add(metadata_set)

    def _ensure(self, metadata_set):
        with self._lock:
            if self.reload or metadata_set not in self._loaded:
                self.load(metadata_set)

    def list_entities(self, metadata_set):
        self._ensure(metadata_set)
        return DictMetadata.list_entities(self, metadata_set)

    def get_entity(self, entity_id, metadata_set):
        self._ensure(metadata_set)
        return DictMetadata.get_entity(self, entity_id, metadata_set)
