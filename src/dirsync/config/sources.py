"""Settings for the directory sources."""

from __future__ import annotations

from pathlib import Path  # noqa: TC003 # pydantic resolves annotations at runtime

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class SourceBaseModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class CsvSourceConfig(SourceBaseModel):
    """A CSV file with the columns ``email,first_name,last_name,phone``."""

    file_path: Path


class LdapAttribute(SourceBaseModel):
    """An LDAP attribute name, optionally flagged as carrying binary values."""

    name: str
    is_binary: bool = False

    @model_validator(mode="before")
    @classmethod
    def _accept_plain_name(cls, value: object) -> object:
        if isinstance(value, str):
            return {"name": value}
        return value

    def __str__(self) -> str:
        return self.name


class LdapAttributesMapping(SourceBaseModel):
    """Which LDAP attribute carries which user field."""

    first_name: LdapAttribute
    last_name: LdapAttribute
    preferred_username: LdapAttribute
    email: LdapAttribute
    phone: LdapAttribute
    user_id: LdapAttribute
    status: LdapAttribute
    disable_bitmasks: tuple[int, ...] = ()

    @field_validator("disable_bitmasks", mode="before")
    @classmethod
    def _parse_bitmasks(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.split()
        if isinstance(value, (list, tuple)):
            return tuple(int(item, 0) if isinstance(item, str) else item for item in value)
        return value

    @property
    def disable_bitmask(self) -> int:
        combined = 0
        for mask in self.disable_bitmasks:
            combined |= mask
        return combined

    def attribute_list(self) -> list[str]:
        return [
            self.first_name.name,
            self.last_name.name,
            self.preferred_username.name,
            self.email.name,
            self.phone.name,
            self.user_id.name,
            self.status.name,
        ]


class LdapTlsConfig(SourceBaseModel):
    client_key: Path | None = None
    client_certificate: Path | None = None
    server_certificate: Path | None = None
    danger_disable_tls_verify: bool = False
    danger_use_start_tls: bool = False

    @model_validator(mode="after")
    def _require_key_pair(self) -> LdapTlsConfig:
        if (self.client_key is None) != (self.client_certificate is None):
            raise ValueError("Both client key *and* certificate must be specified")
        return self


class LdapSourceConfig(SourceBaseModel):
    """Connection and mapping settings for an LDAP or AD server."""

    url: str
    base_dn: str
    bind_dn: str
    bind_password: str
    # Must not filter on the status attribute; disabled users are needed
    user_filter: str
    timeout: int = 5
    attributes: LdapAttributesMapping
    use_attribute_filter: bool = False
    tls: LdapTlsConfig | None = None

    def attribute_list(self) -> list[str]:
        if self.use_attribute_filter:
            return self.attributes.attribute_list()
        return ["*"]


class UktSourceConfig(SourceBaseModel):
    """An OAuth2-protected endpoint listing email addresses of removed users."""

    endpoint_url: str
    oauth2_url: str
    client_id: str
    client_secret: str
    scope: str
    grant_type: str = "client_credentials"


class SourcesConfig(SourceBaseModel):
    ldap: LdapSourceConfig | None = None
    csv: CsvSourceConfig | None = None
    ukt: UktSourceConfig | None = None

    @model_validator(mode="after")
    def _at_most_one_directory(self) -> SourcesConfig:
        if self.ldap is not None and self.csv is not None:
            raise ValueError("Only one of the `ldap` and `csv` sources may be configured")
        return self


__all__ = [
    "CsvSourceConfig",
    "LdapAttribute",
    "LdapAttributesMapping",
    "LdapSourceConfig",
    "LdapTlsConfig",
    "SourcesConfig",
    "UktSourceConfig",
]
