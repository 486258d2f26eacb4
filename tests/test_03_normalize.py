import json

import pytest
from idpyoidc.exception import MissingRequiredAttribute

from mdqservice.cache import MemoryCache
from mdqservice.metadata_api.fs import read_info
from mdqservice.normalize import DiscoNormalizer
from mdqservice.normalize import filter_langs
from mdqservice.normalize import parse_geolocation_hint
from mdqservice.transform import IdentifierTransform
from tests import METADATA_DIR
from tests import SIRTFI


def test_filter_langs():
    assert filter_langs({"en": "English", "af": "Afrikaans"}, "af") == "Afrikaans"
    assert filter_langs({"en": "English", "af": "Afrikaans"}, "zu") == "English"
    assert filter_langs({"de": "Deutsch", "fr": "Francais"}, "zu") == "Deutsch"
    assert filter_langs({"de": "Deutsch"}, "zu", fallback=None) == "Deutsch"
    assert filter_langs(["first", "second"], "en") == "first"
    assert filter_langs("plain", "en") == "plain"
    assert filter_langs({}, "en") is None
    assert filter_langs(None, "en") is None


def test_parse_geolocation_hint():
    assert parse_geolocation_hint("geo:-33.9,18.4;crs=wgs84") == {"lat": "-33.9", "long": "18.4"}
    assert parse_geolocation_hint(["GEO:1,2"]) == {"lat": "1", "long": "2"}
    assert parse_geolocation_hint("somewhere") is None
    assert parse_geolocation_hint([]) is None
    assert parse_geolocation_hint(None) is None


class TestDiscoNormalizer(object):

    @pytest.fixture(autouse=True)
    def create_normalizer(self):
        self.metadata = read_info(METADATA_DIR, 'saml20-idp-remote')
        self.transform = IdentifierTransform(MemoryCache())
        self.normalizer = DiscoNormalizer(language="en", transform=self.transform.transform)

    def test_full_entity(self):
        data = self.normalizer.entity_as_disco_json(self.metadata['https://example.com/idp'])
        assert data == {
            "title": "Example IdP DisplayName",
            "descr": "Description",
            "title_langs": {"en": "Example IdP DisplayName"},
            "descr_langs": {"en": "Description"},
            "auth": "saml",
            "entity_id": "https://example.com/idp",
            "entityID": "https://example.com/idp",
            "registrationAuthority": ["https://example.ac.za"],
            "entity_category": ["http://refeds.org/category/hide-from-discovery"],
            "entity_category_support": ["http://refeds.org/category/research-and-scholarship"],
            "assurance_certification": [SIRTFI],
            "md_source": ["test-metadata", "saml20-idp-remote", "ssp-tag-southafrica"],
            "ssp_tags": ["southafrica"],
            "type": "idp",
            "hidden": "true",
            "scope": "example.com",
            "domain": "example.com",
            "name_tag": "EXAMPLE",
            "entity_icon_url": {
                "url": "https://example.com/logo-16x16.png",
                "width": 16,
                "height": 16
            },
            "privacy_statement_url": "https://example.com/privacy",
            "geo": {"lat": "-33.9", "long": "18.4"},
            "id": "{SHA1}9f246b6fb6c37ac8ccf8a39f9dd6d8ac5a0fdc9f",
        }
        # must be possible to send as JSON
        assert json.loads(json.dumps(data)) == data

    def test_minimal_entity(self):
        data = self.normalizer.entity_as_disco_json(self.metadata['https://example.org/idp'])
        assert data["title"] == "Another Example IdP"
        assert data["descr"] is None
        assert data["descr_langs"] == {}
        assert data["md_source"] == ["saml20-idp-remote"]
        assert data["hidden"] == "false"
        assert data["id"] == "{SHA1}a6697b13dcebd5398d2d2d21465ca5a518ba2853"
        for key in ["registrationAuthority", "entity_category", "scope", "domain", "geo",
                    "entity_icon_url", "tinfo", "ssp_tags"]:
            assert key not in data

    def test_transform_fills_cache(self):
        self.normalizer.entity_as_disco_json(self.metadata['https://example.org/idp'])
        assert self.transform.resolve(
            '{SHA1}a6697b13dcebd5398d2d2d21465ca5a518ba2853') == 'https://example.org/idp'

    def test_title_precedence(self):
        entity = {
            "entityid": "https://idp.example.net",
            "metadata-set": "saml20-idp-remote",
            "OrganizationDisplayName": {"en": "Org Display"},
            "OrganizationName": {"en": "Org Name"},
        }
        assert self.normalizer.entity_as_disco_json(entity)["title"] == "Org Display"
        del entity["OrganizationDisplayName"]
        assert self.normalizer.entity_as_disco_json(entity)["title"] == "Org Name"
        del entity["OrganizationName"]
        _data = self.normalizer.entity_as_disco_json(entity)
        assert _data["title"] is None
        assert _data["title_langs"] == {}

    def test_language_choice(self):
        entity = {
            "entityid": "https://idp.example.net",
            "metadata-set": "saml20-idp-remote",
            "name": {"en": "English name", "af": "Afrikaanse naam"},
        }
        _normalizer = DiscoNormalizer(language="af")
        assert _normalizer.entity_as_disco_json(entity)["title"] == "Afrikaanse naam"
        _normalizer = DiscoNormalizer(language="zu")
        assert _normalizer.entity_as_disco_json(entity)["title"] == "English name"

    def test_hide_from_discovery_flag(self):
        entity = {
            "entityid": "https://idp.example.net",
            "metadata-set": "saml20-idp-hosted",
            "hide.from.discovery": True,
        }
        assert self.normalizer.entity_as_disco_json(entity)["hidden"] == "true"

    def test_multiple_scopes(self):
        entity = {
            "entityid": "https://idp.example.net",
            "metadata-set": "saml20-idp-remote",
            "scope": ["example.net", "example.io"],
        }
        data = self.normalizer.entity_as_disco_json(entity)
        assert data["scope"] == "example.net,example.io"
        assert "domain" not in data
        assert "name_tag" not in data

    def test_empty_scope(self):
        entity = {
            "entityid": "https://idp.example.net",
            "metadata-set": "saml20-idp-remote",
            "scope": [],
        }
        data = self.normalizer.entity_as_disco_json(entity)
        assert data["scope"] == ""
        assert "domain" not in data

    def test_icon_keywords_and_discovery_response(self):
        entity = {
            "entityid": "https://sp.example.net",
            "metadata-set": "saml20-sp-remote",
            "icon": "https://sp.example.net/icon.png",
            "UIInfo": {"Keywords": {"en": ["one", "two"]}},
            "DiscoveryResponse": ["https://sp.example.net/disco"],
        }
        data = self.normalizer.entity_as_disco_json(entity)
        assert data["type"] == "sp"
        assert "hidden" not in data
        assert data["entity_icon_url"] == {"url": "https://sp.example.net/icon.png"}
        assert data["keywords"] == "one,two"
        assert data["discovery_response"] == ["https://sp.example.net/disco"]

    def test_unknown_set(self):
        entity = {"entityid": "https://x.example.net", "metadata-set": "adfs-idp-hosted"}
        data = self.normalizer.entity_as_disco_json(entity)
        assert data["auth"] == "unknown"
        assert data["type"] == "idp"

    def test_explicit_id_kept(self):
        entity = {
            "entityid": "https://x.example.net",
            "metadata-set": "saml20-idp-remote",
            "id": "{SHA1}0000"
        }
        assert self.normalizer.entity_as_disco_json(entity)["id"] == "{SHA1}0000"

    def test_sp_gets_trust_info(self):
        _tinfo = {"profiles": {"x": {"strict": True}}, "entity_id": "https://sp.example.net"}
        normalizer = DiscoNormalizer(selection_profiles=lambda entity: _tinfo)
        entity = {"entityid": "https://sp.example.net", "metadata-set": "saml20-sp-remote"}
        assert normalizer.entity_as_disco_json(entity)["tinfo"] == _tinfo

        entity = {"entityid": "https://idp.example.net", "metadata-set": "saml20-idp-remote"}
        assert "tinfo" not in normalizer.entity_as_disco_json(entity)

    def test_missing_entity_id(self):
        with pytest.raises(MissingRequiredAttribute):
            self.normalizer.entity_as_disco_json({"metadata-set": "saml20-idp-remote"})
