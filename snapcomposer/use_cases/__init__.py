"""Application use cases for post assembly and publishing."""

from .assemble import PostAssembler, compose_body, extract_hashtags, merge_tags
from .publish import PublishCoordinator, make_permlink

__all__ = [
    "PostAssembler",
    "compose_body",
    "extract_hashtags",
    "merge_tags",
    "PublishCoordinator",
    "make_permlink",
]
