""" Classes used to describe metadata entities and entity selection profiles."""
from idpyoidc.message import Message
from idpyoidc.message import OPTIONAL_LIST_OF_STRINGS
from idpyoidc.message import SINGLE_OPTIONAL_STRING
from idpyoidc.message import SINGLE_REQUIRED_STRING
from idpyoidc.message.oidc import SINGLE_OPTIONAL_BOOLEAN
from idpyoidc.message.oidc import SINGLE_OPTIONAL_DICT

OPTIONAL_LIST_OF_DICTS = ([dict], False, None, None, False)


def verify_boolean(msg, name):
    if name in msg and not isinstance(msg[name], bool):
        raise ValueError(f'"{name}" must be a boolean')


class SAMLEntity(Message):
    """A metadata entity as handed over by the metadata provider."""
    c_param = {
        "entityid": SINGLE_REQUIRED_STRING,
        "metadata-set": SINGLE_OPTIONAL_STRING,
        "metarefresh:src": SINGLE_OPTIONAL_STRING,
        "tags": OPTIONAL_LIST_OF_STRINGS,
        "UIInfo": SINGLE_OPTIONAL_DICT,
        "EntityAttributes": SINGLE_OPTIONAL_DICT,
        "RegistrationInfo": SINGLE_OPTIONAL_DICT,
        "DiscoHints": SINGLE_OPTIONAL_DICT,
        "icon": SINGLE_OPTIONAL_STRING,
        "id": SINGLE_OPTIONAL_STRING,
        # scope, name, description, OrganizationName, OrganizationDisplayName,
        # DiscoveryResponse and hide.from.discovery are kept as given
    }

    def attribute(self, name, default=None):
        """Values of one EntityAttribute."""
        return self.get("EntityAttributes", {}).get(name, default)

    def ui_info(self, name, default=None):
        return self.get("UIInfo", {}).get(name, default)


class EntitySelector(Message):
    """An 'entity' clause of a selection profile."""
    c_param = {
        "entity_id": SINGLE_REQUIRED_STRING,
        "include": SINGLE_OPTIONAL_BOOLEAN,
    }

    def verify(self, **kwargs):
        super(EntitySelector, self).verify(**kwargs)
        verify_boolean(self, "include")
        return True


class EntitiesSelector(Message):
    """An 'entities' clause of a selection profile. 'select' may be any JSON value."""
    c_param = {
        "match": SINGLE_OPTIONAL_STRING,
        "include": SINGLE_OPTIONAL_BOOLEAN,
    }

    def verify(self, **kwargs):
        super(EntitiesSelector, self).verify(**kwargs)
        verify_boolean(self, "include")
        return True


class SelectionProfile(Message):
    """One named profile."""
    c_param = {
        "strict": SINGLE_OPTIONAL_BOOLEAN,
        "entity": OPTIONAL_LIST_OF_DICTS,
        "entities": OPTIONAL_LIST_OF_DICTS,
    }

    def verify(self, **kwargs):
        super(SelectionProfile, self).verify(**kwargs)
        verify_boolean(self, "strict")

        for _rule in self.get("entity", []):
            EntitySelector(**_rule).verify()
        for _rule in self.get("entities", []):
            EntitiesSelector(**_rule).verify()
        return True


class TrustInfo(Message):
    """
    The decoded content of the entity selection profile attribute.
    Based on https://github.com/TheIdentitySelector/thiss-mdq/blob/1.5.8/trustinfo.schema.json
    """
    c_param = {
        "profiles": SINGLE_OPTIONAL_DICT,
        "extra_md": SINGLE_OPTIONAL_DICT,
        "entity_id": SINGLE_OPTIONAL_STRING,
    }

    def verify(self, **kwargs):
        super(TrustInfo, self).verify(**kwargs)

        for _name, _profile in self.get("profiles", {}).items():
            if not isinstance(_profile, dict):
                raise ValueError(f"Profile {_name} is not an object")
            SelectionProfile(**_profile).verify()
        for _entity_id, _record in self.get("extra_md", {}).items():
            if not isinstance(_record, dict):
                raise ValueError(f"extra_md for {_entity_id} is not an object")
        return True
