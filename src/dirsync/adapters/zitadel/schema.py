"""Pydantic models describing the Zitadel user and management API payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class ZitadelBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)


class HumanProfile(ZitadelBaseModel):
    given_name: str = ""
    family_name: str = ""
    nick_name: str | None = None
    display_name: str | None = None

    _normalize_nick_name = field_validator("nick_name", mode="before")(_blank_to_none)


class HumanEmail(ZitadelBaseModel):
    email: str = ""
    is_verified: bool = False


class HumanPhone(ZitadelBaseModel):
    phone: str | None = None
    is_verified: bool = False

    _normalize_phone = field_validator("phone", mode="before")(_blank_to_none)


class HumanUser(ZitadelBaseModel):
    profile: HumanProfile = Field(default_factory=HumanProfile)
    email: HumanEmail = Field(default_factory=HumanEmail)
    phone: HumanPhone = Field(default_factory=HumanPhone)


class UserPayload(ZitadelBaseModel):
    user_id: str
    username: str | None = None
    human: HumanUser | None = None


class ListDetails(ZitadelBaseModel):
    total_result: int = 0


class ListUsersResponse(ZitadelBaseModel):
    details: ListDetails = Field(default_factory=ListDetails)
    result: list[UserPayload] = Field(default_factory=list)


class MetadataEntry(ZitadelBaseModel):
    key: str
    # base64 encoded by the API
    value: str = ""


class ListMetadataResponse(ZitadelBaseModel):
    result: list[MetadataEntry] = Field(default_factory=list)


class CreateUserResponse(ZitadelBaseModel):
    user_id: str


class ErrorResponse(ZitadelBaseModel):
    code: int | None = None
    message: str = ""
