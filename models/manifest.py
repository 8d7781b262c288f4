from __future__ import annotations

import json
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

SCHEMA_VERSION = "2.0"
MEDIA_ROOT = "media"


def _empty_list_as_dict(v: Any) -> Any:
    # PHP encodes empty associative arrays as []
    if isinstance(v, list) and not v:
        return {}
    return v


def _number_as_str(v: Any) -> Any:
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return v


class BlueprintInfo(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    version: str = "1.0"
    name: str = ""
    description: str = ""

    @field_validator("version", mode="before")
    @classmethod
    def _version_str(cls, v: Any):
        return _number_as_str(v)


class PluginRequirement(BaseModel):
    """Minimum version of an extension plus the schemas it carries."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    version: str = "latest"
    post_types: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("postTypes", "post-types", "post_types"),
        serialization_alias="postTypes",
    )
    taxonomies: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    field_groups: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("fieldGroups", "field-groups", "field_groups"),
        serialization_alias="fieldGroups",
    )

    @field_validator("version", mode="before")
    @classmethod
    def _version_str(cls, v: Any):
        if v is None:
            return "latest"
        return _number_as_str(v)

    @field_validator("post_types", "taxonomies", "field_groups", mode="before")
    @classmethod
    def _schemas_mapping(cls, v: Any):
        return _empty_list_as_dict(v)

    @property
    def has_schemas(self) -> bool:
        return bool(self.post_types or self.taxonomies or self.field_groups)


class PostRecord(BaseModel):
    """A post as stored by the host.  Unknown host fields are preserved."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[int] = Field(None, alias="ID")
    post_type: str = "post"
    post_status: str = "publish"
    post_title: str = ""
    post_content: str = ""
    post_excerpt: str = ""
    post_name: str = ""
    post_parent: int = 0
    menu_order: int = 0

    @model_validator(mode="before")
    @classmethod
    def _drop_guid(cls, data: Any):
        # GUIDs embed the generating site's URL and are regenerated on import.
        if isinstance(data, dict) and "guid" in data:
            data = {k: v for k, v in data.items() if k != "guid"}
        return data

    @field_validator("post_parent", "menu_order", mode="before")
    @classmethod
    def _none_as_zero(cls, v: Any):
        return 0 if v in (None, "") else v

    def fields_for_insert(self) -> Dict[str, Any]:
        """Post fields without the stored ID, ready for the host to create."""
        return self.model_dump(exclude={"id"})


class TermRecord(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    term_id: Optional[int] = Field(
        None,
        validation_alias=AliasChoices("termId", "term_id"),
        serialization_alias="termId",
    )
    name: Optional[str] = None
    taxonomy: Optional[str] = None
    slug: str = ""
    description: str = ""
    parent: int = 0

    @field_validator("parent", mode="before")
    @classmethod
    def _parent_default(cls, v: Any):
        return 0 if v in (None, "") else v

    @field_validator("slug", "description", mode="before")
    @classmethod
    def _text_default(cls, v: Any):
        return "" if v is None else v

    @property
    def is_complete(self) -> bool:
        return bool(self.term_id) and bool((self.name or "").strip()) and bool(self.taxonomy)


class MetaEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(validation_alias=AliasChoices("key", "meta_key"))
    value: Any = Field(None, validation_alias=AliasChoices("value", "meta_value"))


class ContentService(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    version: Optional[str] = None
    theme: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    options: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("options", "wp-options", "wp_options"),
        serialization_alias="options",
    )
    plugins: Dict[str, PluginRequirement] = Field(default_factory=dict)
    posts: Dict[int, PostRecord] = Field(default_factory=dict)
    post_terms: Dict[int, List[TermRecord]] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("postTerms", "post_terms"),
        serialization_alias="postTerms",
    )
    post_meta: Dict[int, List[MetaEntry]] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("postMeta", "post_meta"),
        serialization_alias="postMeta",
    )
    media: Dict[int, str] = Field(default_factory=dict)

    @field_validator("version", mode="before")
    @classmethod
    def _version_str(cls, v: Any):
        return _number_as_str(v)

    @field_validator("theme", mode="before")
    @classmethod
    def _theme_mapping(cls, v: Any):
        if isinstance(v, str):
            return {v: {"version": "latest"}} if v else {}
        return _empty_list_as_dict(v)

    @field_validator("options", "plugins", "posts", "post_terms", "post_meta", "media", mode="before")
    @classmethod
    def _mapping(cls, v: Any):
        if v is None:
            return {}
        return _empty_list_as_dict(v)

    @field_validator("media")
    @classmethod
    def _media_paths(cls, v: Dict[int, str]):
        for media_id, rel_path in v.items():
            path = PurePosixPath(rel_path)
            if path.is_absolute() or ".." in path.parts or "\\" in rel_path:
                raise ValueError(f"media {media_id} path {rel_path!r} must be a relative POSIX path")
            if len(path.parts) < 2 or path.parts[0] != MEDIA_ROOT:
                raise ValueError(f"media {media_id} path {rel_path!r} must live under {MEDIA_ROOT}/")
        return v

    def term_records(self) -> List[TermRecord]:
        """All term records in manifest order, duplicates included."""
        return [term for terms in self.post_terms.values() for term in terms]


class Services(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    content: Optional[ContentService] = Field(
        None,
        validation_alias=AliasChoices("content", "wordpress"),
        serialization_alias="content",
    )


class Manifest(BaseModel):
    """The ``main.json`` document describing everything a blueprint creates."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    schema_version: str = Field(
        SCHEMA_VERSION,
        validation_alias=AliasChoices("schema", "schemaVersion"),
        serialization_alias="schema",
    )
    blueprint: BlueprintInfo = Field(default_factory=BlueprintInfo)
    services: Services = Field(default_factory=Services)

    @field_validator("schema_version", mode="before")
    @classmethod
    def _schema_str(cls, v: Any):
        return _number_as_str(v)

    @property
    def content(self) -> ContentService:
        """The content service, created empty if the manifest has none."""
        if self.services.content is None:
            self.services.content = ContentService()
        return self.services.content

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)
