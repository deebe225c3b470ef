"""Configuration models describing tagmap settings."""

from __future__ import annotations

from typing import Any, List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

SortMode = Literal["name", "modified", "created"]


class TagMapBaseModel(BaseModel):
    """Shared configuration for tagmap Pydantic models."""

    model_config = ConfigDict(extra="forbid")


def _split_list(value: Any) -> Any:
    """Accept comma-separated strings wherever a list of names is expected."""
    if isinstance(value, str):
        return value.split(",")
    return value


class LoggingSettings(TagMapBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
    """

    level: str = "WARNING"

    @field_validator("level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper()


class TagMapConfig(TagMapBaseModel):
    """Top-level configuration struct for tagmap.

    Attributes:
        output_name: File name (without ``.md``) of the generated index note.
        auto_update: Whether change events and the interval timer regenerate the index.
        update_interval: Minutes between periodic regenerations.
        exclude_folders: Folder prefixes whose notes are skipped.
        sort_by: Ordering applied to notes inside each section.
        show_file_count: Whether each section lists its note count.
        show_last_modified: Whether each entry shows its modification date.
        include_nested_tags: Whether inline tags containing ``/`` are kept.
        show_tag_hierarchy: Whether nested inline tags also add their parent tags.
        exclude_tags: Tags that never receive a section.
        logging: Logging configuration.
    """

    output_name: str = Field(default="Maps of Content", min_length=1)
    auto_update: bool = True
    update_interval: int = Field(default=5, ge=1)
    exclude_folders: List[str] = Field(default_factory=lambda: [".obsidian", ".trash"])
    sort_by: SortMode = "name"
    show_file_count: bool = True
    show_last_modified: bool = False
    include_nested_tags: bool = True
    show_tag_hierarchy: bool = False
    exclude_tags: List[str] = Field(default_factory=list)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("output_name")
    @classmethod
    def _strip_output_name(cls, value: str) -> str:
        stripped = value.strip()
        if stripped.endswith(".md"):
            stripped = stripped[: -len(".md")]
        if not stripped:
            raise ValueError("output_name must not be empty")
        # The index note always lives at the vault root.
        if "/" in stripped or "\\" in stripped:
            raise ValueError("output_name must be a file name without folder separators")
        return stripped

    @field_validator("exclude_folders", mode="before")
    @classmethod
    def _normalize_folders(cls, value: Any) -> Any:
        value = _split_list(value)
        if not isinstance(value, list):
            return value
        folders = [str(item).strip().rstrip("/") for item in value if item is not None]
        return [folder for folder in folders if folder]

    @field_validator("exclude_tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: Any) -> Any:
        value = _split_list(value)
        if not isinstance(value, list):
            return value
        tags = [str(item).strip().removeprefix("#") for item in value if item is not None]
        return [tag for tag in tags if tag]

    @property
    def output_filename(self) -> str:
        """Return the artifact file name including its extension."""
        return f"{self.output_name}.md"


__all__ = [
    "SortMode",
    "TagMapBaseModel",
    "LoggingSettings",
    "TagMapConfig",
]
