"""
Entity selection profiles (trust profiles).

A relying party can publish, in an entity attribute, a set of named profiles
that tell the discovery service which identity providers to show. Profiles
are either strict (only selected entities are returned) or permissive (all
entities are returned, selected ones carry ``hint: True``).

The evaluation follows
https://github.com/TheIdentitySelector/thiss-mdq/blob/1.5.8/metadata.js#L269-L283
"""
import base64
import json
import logging
from enum import Enum
from typing import Callable
from typing import Iterable
from typing import List
from typing import Optional
from typing import Union

from cryptojwt.utils import as_unicode

from mdqservice.defaults import SELECTION_PROFILE_ATTRIBUTE
from mdqservice.exception import ProfileDecodeError
from mdqservice.message import SAMLEntity
from mdqservice.message import TrustInfo

logger = logging.getLogger(__name__)


class Seen(Enum):
    """Outcome of the 'entity' clauses of a profile."""
    UNSET = 0
    ALLOW = 1
    DENY = 2


def decode_selection_profile(blob: Union[str, bytes]) -> dict:
    """
    Decode a base64 encoded JSON selection profile document.

    :raises ProfileDecodeError: If the blob can't be decoded or doesn't look
        like a selection profile document
    """
    try:
        _info = json.loads(as_unicode(base64.b64decode(blob)))
        if not isinstance(_info, dict):
            raise ValueError("not a JSON object")
        TrustInfo(**_info).verify()
    except Exception as err:
        raise ProfileDecodeError(str(err))
    return _info


def get_selection_profiles(entity: SAMLEntity,
                           global_profiles: Optional[dict] = None,
                           attribute: Optional[str] = SELECTION_PROFILE_ATTRIBUTE) -> dict:
    """
    Process the trust information / entity selection profile for an entity.

    :param entity: The entity to get the trust information for
    :param global_profiles: Profiles every entity gets, the entity's own
        profiles with the same name take precedence
    :param attribute: Entity attribute carrying the profile document
    :return: The trust information, an empty dictionary if there is none
    """
    selection_profiles = {}
    _blobs = entity.attribute(attribute)
    if _blobs:
        try:
            selection_profiles = decode_selection_profile(_blobs[0])
        except ProfileDecodeError as err:
            logger.warning(f"Failed to decode selection profile for {entity['entityid']}: {err}")
            selection_profiles = {}

    if "profiles" in selection_profiles or global_profiles:
        _profiles = dict(global_profiles or {})
        _profiles.update(selection_profiles.get("profiles") or {})
        selection_profiles["profiles"] = _profiles

    if selection_profiles:
        selection_profiles["entity_id"] = entity["entityid"]
        selection_profiles["entityId"] = entity["entityid"]
    return selection_profiles


def included(rule: dict) -> bool:
    _include = rule.get("include")
    if _include is None:
        return True
    return bool(_include)


def direct_rule_pass(rules: List[dict], entity_id: str) -> Seen:
    """
    Run the 'entity' clauses in order. The first clause that allows the
    entity ends the evaluation.
    """
    seen = Seen.UNSET
    for rule in rules:
        if seen is Seen.ALLOW:
            break
        _same = rule.get("entity_id") == entity_id
        if included(rule):
            seen = Seen.ALLOW if _same else Seen.DENY
        else:
            seen = Seen.DENY if _same else Seen.ALLOW
    return seen


def rule_passes(rule: dict, record: dict) -> Optional[bool]:
    """
    Evaluate one 'entities' clause against a discojson record.

    :return: True/False, or None if the record doesn't have the attribute the
        clause matches on
    """
    _match = rule.get("match")
    if _match is None or _match not in record:
        return None

    _value = record[_match]
    if isinstance(_value, list):
        _found = rule.get("select") in _value
    else:
        _found = _value == rule.get("select")
    return _found if included(rule) else not _found


def predicate_pass(rules: List[dict], record: dict) -> bool:
    # Clauses the record can't be evaluated against still count, so such a
    # profile never selects the record.
    passed = len([rule for rule in rules if rule_passes(rule, record)])
    return passed == len(rules)


def matches_extra_query(record: dict, query: str) -> bool:
    """Free text match against a record coming from extra metadata."""
    _title_langs = record.get("title_langs") or {}
    if isinstance(_title_langs, dict):
        _title_langs = ",".join([str(v) for v in _title_langs.values()])

    for searchable in [record.get("title"), _title_langs, record.get("tags"),
                       record.get("keywords"), record.get("scope")]:
        if not searchable:
            continue
        if isinstance(searchable, list):
            searchable = ",".join([str(s) for s in searchable])
        if query in str(searchable).lower():
            return True
    return False


class TrustProfile(object):
    """One named selection profile of a relying party."""

    def __init__(self,
                 name: str,
                 profile: dict,
                 extra_md: Optional[dict] = None,
                 owner: Optional[str] = '',
                 transform: Optional[Callable[[str], str]] = None):
        self.name = name
        self.owner = owner
        self.strict = bool(profile.get("strict", False))
        self.entity_rules = profile.get("entity") or []
        self.entities_rules = profile.get("entities")
        self.extra_md = extra_md or {}
        self.transform = transform

        # The partition used when evaluating many entities at once
        self._include_ids = {r.get("entity_id") for r in self.entity_rules if included(r)}
        self._exclude_ids = {r.get("entity_id") for r in self.entity_rules if not included(r)}
        self.referenced_extra = []
        for rule in self.entity_rules:
            _id = rule.get("entity_id")
            if _id in self.extra_md and _id not in self.referenced_extra:
                self.referenced_extra.append(_id)

    def seen(self, entity_id: str) -> Seen:
        """Same result as direct_rule_pass() without walking the rules."""
        if not self.entity_rules:
            return Seen.UNSET
        if entity_id in self._include_ids:
            return Seen.ALLOW
        if self._exclude_ids - {entity_id}:
            return Seen.ALLOW
        return Seen.DENY

    def extra_record(self, entity_id: str) -> dict:
        _record = dict(self.extra_md[entity_id])
        _record.setdefault("entity_id", entity_id)
        if "id" not in _record and self.transform:
            _record["id"] = self.transform(entity_id)
        return _record

    def selected(self, record: dict, seen: Seen) -> bool:
        if seen is Seen.DENY:
            return False
        if self.entities_rules is None:
            return True
        return predicate_pass(self.entities_rules, record)

    def decide(self, record: dict, seen: Seen, from_extra_md: bool = False) -> Optional[dict]:
        if from_extra_md:
            # entities from extra metadata have to be selected explicitly
            if seen is not Seen.DENY and record["entity_id"] in self.referenced_extra:
                return dict(record, hint=True)
            return None

        if self.selected(record, seen):
            if self.strict:
                return record
            return dict(record, hint=True)
        elif self.strict:
            return None
        return record

    def evaluate(self, candidate: Optional[dict], identifier: Optional[str] = '') -> Optional[dict]:
        """
        Apply the profile to one entity.

        :param candidate: The discojson record of the entity, None if it isn't
            in the metadata
        :param identifier: The entityID asked for
        :return: The record (possibly with a hint) or None if the profile
            excludes it
        """
        if candidate and candidate.get("type") == "sp":
            return candidate

        entity_id = identifier or (candidate or {}).get("entity_id")
        if entity_id in self.extra_md:
            _record = self.extra_record(entity_id)
            return self.decide(_record, direct_rule_pass(self.entity_rules, entity_id), True)

        if not candidate:
            return None

        _seen = direct_rule_pass(self.entity_rules, candidate["entity_id"])
        return self.decide(candidate, _seen)

    def evaluate_all(self,
                     records: Iterable[dict],
                     query: Optional[str] = '',
                     entity_filter: Optional[str] = '') -> List[dict]:
        """
        Apply the profile to a search result. Entities from extra metadata
        that are referenced by the profile and match the query are added.
        """
        result = []
        present = set()
        for record in records:
            entity_id = record["entity_id"]
            present.add(entity_id)
            if record.get("type") == "sp":
                result.append(record)
                continue

            if entity_id in self.extra_md:
                _decision = self.decide(self.extra_record(entity_id), self.seen(entity_id), True)
            else:
                _decision = self.decide(record, self.seen(entity_id))
            if _decision is not None:
                result.append(_decision)

        for entity_id in self.referenced_extra:
            if entity_id in present:
                continue
            _record = self.extra_record(entity_id)
            if entity_filter and _record.get("type") not in (None, entity_filter):
                continue
            if query and not matches_extra_query(_record, query):
                continue
            _decision = self.decide(_record, self.seen(entity_id), True)
            if _decision is not None:
                result.append(_decision)

        logger.debug(f"Profile {self.name} of {self.owner} kept {len(result)} entities")
        return result


def find_trust_profile(trust_record: Optional[dict],
                       name: str,
                       transform: Optional[Callable[[str], str]] = None) -> Optional[TrustProfile]:
    """
    :param trust_record: discojson record of the relying party
    :param name: Profile name
    :return: A TrustProfile instance or None if there is no such profile
    """
    if not trust_record:
        return None
    _tinfo = trust_record.get("tinfo") or {}
    _profile = (_tinfo.get("profiles") or {}).get(name)
    if _profile is None:
        return None
    return TrustProfile(name, _profile, extra_md=_tinfo.get("extra_md"),
                        owner=_tinfo.get("entity_id", ''), transform=transform)
