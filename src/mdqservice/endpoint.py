import json
import logging
from typing import List
from typing import Optional

from mdqservice.defaults import PYFF_ROLE_PREFIX
from mdqservice.exception import BadRequest
from mdqservice.mdq import MDQ

logger = logging.getLogger(__name__)


def first_of(request: dict, *names, default=None):
    for name in names:
        if name in request:
            return request[name]
    return default


def parse_query(query: Optional[str]) -> str:
    """Lower case the query and enable matching on scope for user@scope queries."""
    query = (query or '').lower()
    if "@" in query and not query.endswith("@"):
        query = query.split("@")[-1]
    return query


def parse_entity_filter(entity_filter: Optional[str]) -> str:
    return (entity_filter or '').lower().replace(PYFF_ROLE_PREFIX, '')


class MDQEndpoint(object):
    """
    Maps MDQ requests onto the MDQ service. What comes back is what the web
    framework needs to build the HTTP response.
    """
    name = "mdq"
    content_type = "application/json"

    def __init__(self, mdq: MDQ):
        self.mdq = mdq

    def verify_accept(self, request: dict, accept: Optional[List[str]] = None):
        if accept is None or self.content_type in accept or "debug" in request:
            return
        raise BadRequest(f"This MDQ endpoint only supports {self.content_type}")

    def cache_control(self, data, private: bool) -> dict:
        if not data:
            return {"private": True, "no-store": True}
        _ttl = self.mdq.config.negative_cache_ttl
        _control = {"max-age": _ttl, "s-maxage": _ttl}
        if private:
            _control["private"] = True
        return _control

    def process_request(self,
                        identifier: Optional[str] = None,
                        request: Optional[dict] = None,
                        accept: Optional[List[str]] = None,
                        language: Optional[str] = None) -> dict:
        """
        :param identifier: The entity asked for, None for a search
        :param request: The query parameters
        :param accept: Acceptable content types
        :return: dictionary with response_msg, status_code and cache_control
        """
        request = request or {}
        self.verify_accept(request, accept)

        entity_id = first_of(request, "entityid", "entityID")
        trust_profile_name = first_of(request, "trustprofile", "trustProfile")
        _private = entity_id is not None and trust_profile_name is not None
        status_code = 200

        if identifier is not None:
            data = self.mdq.lookup_one(identifier, entity_id, trust_profile_name, language)
            if not data:
                data = []
                status_code = 404
        else:
            query = parse_query(first_of(request, "q", "query", default=''))
            entity_filter = parse_entity_filter(request.get("entity_filter", "idp"))
            data = self.mdq.search(query, entity_filter, entity_id, trust_profile_name, language)

        if "debug" in request:
            _msg = json.dumps(data, indent=4)
        else:
            _msg = json.dumps(data)

        return {
            "response_msg": _msg,
            "status_code": status_code,
            "content_type": self.content_type,
            "cache_control": self.cache_control(data, _private),
        }
