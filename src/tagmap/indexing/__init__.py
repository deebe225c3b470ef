"""Tag extraction and index rendering."""

from .builder import IndexBuilder, TagAssignment, build_index
from .tags import extract_tags, parent_tags

__all__ = ["IndexBuilder", "TagAssignment", "build_index", "extract_tags", "parent_tags"]
