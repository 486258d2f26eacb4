"""
Conversion of metadata entities to discojson records.

The schema for discojson is loosely defined and goes back to discoJuice.
What is produced here follows what pyFF and thiss-mdq output, see
https://github.com/TheIdentitySelector/thiss-mdq/tree/1.5.8 , with a few
local extensions (ssp_tags, md_source tags, name_tag).
"""
import logging
import re
from typing import Any
from typing import Callable
from typing import Optional
from typing import Union

from mdqservice.defaults import ENTITY_ATTRIBUTE_MAP
from mdqservice.defaults import FALLBACK_LANGUAGE
from mdqservice.defaults import HIDE_FROM_DISCOVERY
from mdqservice.message import SAMLEntity

logger = logging.getLogger(__name__)

GEO_HINT = re.compile(r'^geo:([^,]+),([^,;]+)(;|$)', re.IGNORECASE)


def filter_langs(data: Optional[Union[dict, list, str]],
                 language: str,
                 fallback: Optional[str] = FALLBACK_LANGUAGE) -> Any:
    """
    Pick the entry for the current language out of a language map.

    :param data: language -> value. A list is treated as an unlabelled set of
        alternatives.
    :param language: The active language
    :param fallback: Language to use if there is nothing in the active one
    :return: The chosen value or None
    """
    if not data:
        return None
    if isinstance(data, dict):
        if data.get(language) is not None:
            return data[language]
        if fallback and data.get(fallback) is not None:
            return data[fallback]
        return next(iter(data.values()))
    if isinstance(data, list):
        return data[0]
    return data


def parse_geolocation_hint(hint: Optional[Union[str, list]]) -> Optional[dict]:
    if isinstance(hint, list):
        hint = hint[0] if hint else None
    if not isinstance(hint, str):
        return None
    _match = GEO_HINT.match(hint)
    if not _match:
        logger.debug(f"Ignoring geolocation hint {hint}")
        return None
    return {"lat": _match.group(1), "long": _match.group(2)}


class DiscoNormalizer(object):
    """Turns SAMLEntity instances into discojson dictionaries."""

    def __init__(self,
                 language: Optional[str] = FALLBACK_LANGUAGE,
                 fallback_language: Optional[str] = FALLBACK_LANGUAGE,
                 transform: Optional[Callable[[str], str]] = None,
                 selection_profiles: Optional[Callable[[SAMLEntity], dict]] = None):
        self.language = language
        self.fallback_language = fallback_language
        self.transform = transform
        self.selection_profiles = selection_profiles

    def filter_langs(self, data):
        return filter_langs(data, self.language, self.fallback_language)

    def entity_as_disco_json(self, entity: Union[dict, SAMLEntity]) -> dict:
        if not isinstance(entity, SAMLEntity):
            entity = SAMLEntity(**entity)
            entity.verify()

        _set = entity.get("metadata-set", "")
        title = (entity.ui_info("DisplayName")
                 or entity.get("name")
                 or entity.get("OrganizationDisplayName")
                 or entity.get("OrganizationName")
                 or {})
        descr = entity.ui_info("Description") or entity.get("description") or {}

        data = {
            "title": self.filter_langs(title),
            "descr": self.filter_langs(descr),
            "title_langs": title,
            "descr_langs": descr,
            "auth": "saml" if "saml20" in _set else "unknown",
            "entity_id": entity["entityid"],
            # per pyFF
            "entityID": entity["entityid"],
        }

        if "RegistrationInfo" in entity:
            data["registrationAuthority"] = [entity["RegistrationInfo"].get("authority")]

        for attribute, key in ENTITY_ATTRIBUTE_MAP.items():
            _values = entity.attribute(attribute)
            if _values is not None:
                data[key] = _values

        data["md_source"] = [_set]
        if "metarefresh:src" in entity:
            data["md_source"].insert(0, entity["metarefresh:src"])
        if "tags" in entity:
            # discopower style tags are made available as sources and as an extension
            data["md_source"].extend([f"ssp-tag-{tag}" for tag in entity["tags"]])
            data["ssp_tags"] = entity["tags"]

        if entity.get("DiscoveryResponse"):
            data["discovery_response"] = entity["DiscoveryResponse"]

        if "-idp-" in _set:
            data["type"] = "idp"
            if (HIDE_FROM_DISCOVERY in data.get("entity_category", [])
                    or bool(entity.get("hide.from.discovery", False))):
                data["hidden"] = "true"
            else:
                data["hidden"] = "false"
        elif "-sp-" in _set:
            data["type"] = "sp"

        if "scope" in entity:
            data["scope"] = ",".join(entity["scope"])
            if len(entity["scope"]) == 1:
                data["domain"] = entity["scope"][0]
                data["name_tag"] = entity["scope"][0].split(".")[0].upper()

        _logo = self.filter_langs(entity.ui_info("Logo"))
        if isinstance(_logo, dict) and _logo.get("url"):
            data["entity_icon_url"] = {"url": _logo["url"]}
            for dim in ["width", "height"]:
                if dim in _logo:
                    data["entity_icon_url"][dim] = _logo[dim]
        elif "icon" in entity:
            data["entity_icon_url"] = {"url": entity["icon"]}

        _keywords = self.filter_langs(entity.ui_info("Keywords"))
        if _keywords:
            if isinstance(_keywords, list):
                _keywords = ",".join(_keywords)
            data["keywords"] = _keywords

        _privacy = self.filter_langs(entity.ui_info("PrivacyStatementURL"))
        if _privacy:
            data["privacy_statement_url"] = _privacy

        _geo = parse_geolocation_hint(entity.get("DiscoHints", {}).get("GeolocationHint"))
        if _geo:
            data["geo"] = _geo

        if "id" in entity:
            data["id"] = entity["id"]
        elif self.transform:
            data["id"] = self.transform(entity["entityid"])

        if data.get("type") == "sp" and self.selection_profiles:
            _tinfo = self.selection_profiles(entity)
            if _tinfo:
                data["tinfo"] = _tinfo

        return data
