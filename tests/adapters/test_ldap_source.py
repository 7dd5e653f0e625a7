from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from ldap3.core.exceptions import LDAPBindError

from dirsync.adapters.ldap import LdapEntry, LdapEntryError, LdapSource, parse_user
from dirsync.config import LdapAttributesMapping, LdapSourceConfig
from dirsync.domain.errors import SourceError
from dirsync.domain.user import compute_localpart


def _mapping(**overrides: object) -> LdapAttributesMapping:
    values: dict[str, object] = {
        "first_name": "cn",
        "last_name": "sn",
        "preferred_username": "displayName",
        "email": "mail",
        "phone": "telephoneNumber",
        "user_id": "uid",
        "status": "shadowFlag",
        "disable_bitmasks": [0x2, 0x10],
    }
    values.update(overrides)
    return LdapAttributesMapping.model_validate(values)


def _entry(dn: str = "uid=john,ou=people", **overrides: bytes | None) -> LdapEntry:
    attributes: dict[str, bytes | None] = {
        "cn": b"John",
        "sn": b"Doe",
        "displayName": b"johnny",
        "mail": b"john@example.com",
        "telephoneNumber": b"123456789",
        "uid": b"john",
        "shadowFlag": b"0",
    }
    attributes.update(overrides)
    return LdapEntry.from_raw(
        dn, {name: [value] for name, value in attributes.items() if value is not None}
    )


def test_parse_user() -> None:
    user = parse_user(_entry(), _mapping())

    assert user.first_name == "John"
    assert user.last_name == "Doe"
    assert user.preferred_username == "johnny"
    assert user.email == "john@example.com"
    assert user.phone == "123456789"
    assert user.enabled
    assert user.external_user_id == b"john".hex()
    assert user.localpart == compute_localpart(b"john")


def test_attribute_names_are_case_insensitive() -> None:
    entry = LdapEntry.from_raw("uid=x", {"CN": [b"John"]})

    assert entry.first("cn") == b"John"


@pytest.mark.parametrize(
    ("status", "enabled"),
    [
        (b"0", True),
        (b"514", False),  # 0x202: ACCOUNTDISABLE
        (b"16", False),  # 0x10: LOCKOUT
        (b"512", True),
    ],
)
def test_status_is_tested_against_bitmasks(status: bytes, enabled: bool) -> None:
    assert parse_user(_entry(shadowFlag=status), _mapping()).enabled is enabled


def test_binary_status_is_big_endian() -> None:
    mapping = _mapping(status={"name": "shadowFlag", "is_binary": True})

    disabled = parse_user(_entry(shadowFlag=(0x202).to_bytes(4, "big")), mapping)
    enabled = parse_user(_entry(shadowFlag=(0x200).to_bytes(4, "big")), mapping)

    assert not disabled.enabled
    assert enabled.enabled


def test_binary_status_must_be_four_bytes() -> None:
    mapping = _mapping(status={"name": "shadowFlag", "is_binary": True})

    with pytest.raises(LdapEntryError, match="32 bit"):
        parse_user(_entry(shadowFlag=b"\x02"), mapping)


@pytest.mark.parametrize(("status", "enabled"), [(b"TRUE", True), (b"FALSE", False)])
def test_text_status_without_bitmasks(status: bytes, enabled: bool) -> None:
    mapping = _mapping(disable_bitmasks=[])

    assert parse_user(_entry(shadowFlag=status), mapping).enabled is enabled


def test_unknown_text_status_without_bitmasks() -> None:
    with pytest.raises(LdapEntryError, match="without disable_bitmasks"):
        parse_user(_entry(shadowFlag=b"maybe"), _mapping(disable_bitmasks=[]))


def test_non_numeric_status_with_bitmasks() -> None:
    with pytest.raises(LdapEntryError, match="status"):
        parse_user(_entry(shadowFlag=b"active"), _mapping())


def test_binary_user_id() -> None:
    raw_id = b"\xff\x00\xfe"
    mapping = _mapping(user_id={"name": "objectGUID", "is_binary": True})
    entry = _entry(uid=None, objectGUID=raw_id)

    user = parse_user(entry, mapping)

    assert user.external_user_id == "ff00fe"
    assert user.localpart == compute_localpart(raw_id)


def test_non_utf8_value_requires_binary_flag() -> None:
    with pytest.raises(LdapEntryError, match="is_binary"):
        parse_user(_entry(uid=b"\xff\xfe"), _mapping())


def test_phone_is_optional() -> None:
    user = parse_user(_entry(telephoneNumber=None), _mapping())

    assert user.phone is None


def test_missing_required_attribute() -> None:
    with pytest.raises(LdapEntryError, match="mail"):
        parse_user(_entry(mail=None), _mapping())


class _FakeConnection:
    def __init__(self, results: list[dict[str, object]]) -> None:
        self.search_kwargs: dict[str, object] = {}
        self.unbound = False

        def paged_search(**kwargs: object) -> list[dict[str, object]]:
            self.search_kwargs = kwargs
            return results

        self.extend = SimpleNamespace(standard=SimpleNamespace(paged_search=paged_search))

    def unbind(self) -> None:
        self.unbound = True


def _config(**overrides: object) -> LdapSourceConfig:
    values: dict[str, object] = {
        "url": "ldap://ldap.example.invalid",
        "base_dn": "ou=people,dc=example,dc=org",
        "bind_dn": "cn=admin,dc=example,dc=org",
        "bind_password": "secret",
        "user_filter": "(objectClass=person)",
        "attributes": _mapping(),
    }
    values.update(overrides)
    return LdapSourceConfig.model_validate(values)


def _result(entry: LdapEntry) -> dict[str, object]:
    return {"type": "searchResEntry", "dn": entry.dn, "raw_attributes": entry.attributes}


def test_ldap_source_sorts_and_skips_bad_entries() -> None:
    connection = _FakeConnection(
        [
            _result(_entry("uid=zed", uid=b"zed", mail=b"zed@example.com")),
            _result(_entry("uid=broken", uid=b"broken", mail=None)),
            _result(_entry("uid=amy", uid=b"amy", mail=b"amy@example.com")),
            {"type": "searchResRef", "uri": ["ldap://elsewhere"]},
        ]
    )
    source = LdapSource(_config(), connection_factory=lambda _config: connection)

    users = asyncio.run(source.get_sorted_users())

    assert [user.email for user in users] == ["amy@example.com", "zed@example.com"]
    assert connection.unbound
    assert connection.search_kwargs["search_base"] == "ou=people,dc=example,dc=org"
    assert connection.search_kwargs["search_filter"] == "(objectClass=person)"
    assert connection.search_kwargs["attributes"] == ["*"]


def test_ldap_source_requests_mapped_attributes_when_filtering() -> None:
    connection = _FakeConnection([])
    source = LdapSource(
        _config(use_attribute_filter=True),
        connection_factory=lambda _config: connection,
    )

    asyncio.run(source.get_sorted_users())

    assert "mail" in connection.search_kwargs["attributes"]  # type: ignore[operator]


def test_ldap_bind_failure_is_a_source_error() -> None:
    def failing_factory(_config: LdapSourceConfig):
        raise LDAPBindError("invalid credentials")

    source = LdapSource(_config(), connection_factory=failing_factory)

    with pytest.raises(SourceError, match="invalid credentials"):
        asyncio.run(source.get_sorted_users())
