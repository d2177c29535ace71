"""Use case: build the post body and metadata from draft state and upload results."""
from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Sequence

from ..models import ComposerConfig, PostRecord
from ..protocols import IContainerLookup

logger = logging.getLogger(__name__)

# ASCII word characters only, so tags match what the ledger frontends index
HASHTAG_PATTERN = re.compile(r"#(\w+)", re.ASCII)


def extract_hashtags(text: str) -> List[str]:
    """Every ``#word`` occurrence without the ``#``, in order of appearance."""
    return [match.group(1) for match in HASHTAG_PATTERN.finditer(text or "")]


def merge_tags(seed: Iterable[str], hashtags: Iterable[str]) -> List[str]:
    """Seed tags first, then hashtags; duplicates keep their first position."""
    return list(dict.fromkeys(tag for tag in [*seed, *hashtags] if tag))


def image_markup(url: str, alt: str = "image") -> str:
    return f"![{alt}]({url})"


def compose_body(
    text: str,
    video_embed: Optional[str] = None,
    image_urls: Sequence[str] = (),
    gif_url: Optional[str] = None,
) -> str:
    """
    Fixed order: text, video embed, images (one per line), GIF.

    Non-empty sections are separated by a blank line.
    """
    sections = [text]
    if video_embed:
        sections.append(video_embed)
    if image_urls:
        sections.append("\n".join(image_markup(url) for url in image_urls))
    if gif_url:
        sections.append(image_markup(gif_url, "gif"))
    return "\n\n".join(section for section in sections if section)


class PostAssembler:
    """
    Deterministic post construction.

    Top-level snaps (parent permlink equal to the reserved container tag)
    are re-parented to the current container post and seeded with the
    community tag plus the container tag.
    """

    def __init__(self, config: ComposerConfig, container_lookup: IContainerLookup):
        self._config = config
        self._lookup = container_lookup

    async def assemble(
        self,
        *,
        author: str,
        permlink: str,
        parent_author: str,
        parent_permlink: str,
        text: str,
        video_embed: Optional[str] = None,
        image_urls: Sequence[str] = (),
        gif_url: Optional[str] = None,
    ) -> PostRecord:
        body = compose_body(text, video_embed, image_urls, gif_url)

        seed: List[str] = []
        if parent_permlink == self._config.container_tag:
            parent_permlink = await self._lookup.latest_permlink()
            seed = [self._config.community_tag, self._config.container_tag]
            logger.debug(f"[assemble] container resolved to {parent_permlink}")

        tags = merge_tags(seed, extract_hashtags(text))

        return PostRecord(
            author=author,
            permlink=permlink,
            parent_author=parent_author,
            parent_permlink=parent_permlink,
            body=body,
            tags=tuple(tags),
            images=tuple(image_urls),
            video_embed=video_embed,
            app=self._config.app_name,
        )
