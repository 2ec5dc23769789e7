"""
media_types.py — Data model for Instagram publish work items.

One dataclass per media kind, the per-kind polling/publishing policy, and
the parser that turns a batch entry (plain JSON object) into a WorkItem.
Parsing validates everything that can be checked without the network,
so a bad carousel never costs a Graph call.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from config import GRAPH_API_VERSION, INSTAGRAM_USER_ID
from errors import ErrorCode, ErrorRecord, PublishError

READY_STATUSES = {"FINISHED", "PUBLISHED", "READY"}
ERROR_STATUSES = {"ERROR", "FAILED"}

CAROUSEL_MIN_ITEMS = 2
CAROUSEL_MAX_ITEMS = 10

RESOURCES = ("image", "reels", "stories", "carousel")


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"                    # reels and stories
    CAROUSEL_CHILD = "carousel_child"
    CAROUSEL = "carousel"


@dataclass(frozen=True)
class PublishPolicy:
    """Timing budget for polling a container and publishing it."""
    poll_interval_ms: int
    max_poll_attempts: int
    publish_retry_delay_ms: int
    publish_max_attempts: int

    def __post_init__(self):
        for name in ("poll_interval_ms", "max_poll_attempts",
                     "publish_retry_delay_ms", "publish_max_attempts"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")


DEFAULT_POLICIES = {
    MediaKind.IMAGE: PublishPolicy(1500, 20, 1500, 3),
    MediaKind.VIDEO: PublishPolicy(3000, 80, 3000, 6),
    MediaKind.CAROUSEL: PublishPolicy(1500, 20, 1500, 3),
    MediaKind.CAROUSEL_CHILD: PublishPolicy(1500, 20, 1500, 3),
}


def policy_for(kind: MediaKind) -> PublishPolicy:
    return DEFAULT_POLICIES[kind]


def classify_status(values) -> str:
    """
    Classify raw container status values as "ready", "error" or "pending".

    Strings are compared case-insensitively; anything that is not a string,
    or not in either set, counts as pending.
    """
    statuses = [v.upper() for v in values if isinstance(v, str)]
    if any(s in READY_STATUSES for s in statuses):
        return "ready"
    if any(s in ERROR_STATUSES for s in statuses):
        return "error"
    return "pending"


# ---------------------------------------------------------------------------
# Media variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ImageMedia:
    image_url: str
    kind = MediaKind.IMAGE


@dataclass(frozen=True)
class VideoMedia:
    video_url: str
    media_type: str = "REELS"  # or STORIES
    kind = MediaKind.VIDEO


@dataclass(frozen=True)
class CarouselChild:
    child_type: str  # IMAGE or VIDEO
    url: str
    kind = MediaKind.CAROUSEL_CHILD


@dataclass(frozen=True)
class CarouselMedia:
    children: tuple
    kind = MediaKind.CAROUSEL


Media = Union[ImageMedia, VideoMedia, CarouselChild, CarouselMedia]


@dataclass
class WorkItem:
    """One entry of a publish batch."""
    node: str
    caption: str
    media: Media
    graph_api_version: str = GRAPH_API_VERSION
    policy: Optional[PublishPolicy] = None

    def __post_init__(self):
        if self.policy is None:
            self.policy = policy_for(self.media.kind)

    @property
    def kind(self) -> MediaKind:
        return self.media.kind


@dataclass
class ItemResult:
    """Outcome of one work item: the publish response or an ErrorRecord."""
    index: int
    ok: bool
    payload: Optional[dict] = None
    error: Optional[ErrorRecord] = None
    resource: str = ""
    node: str = ""

    def to_dict(self) -> dict:
        out = {"index": self.index, "resource": self.resource, "success": self.ok}
        if self.ok:
            out["response"] = self.payload
        else:
            out["error"] = self.error.to_dict()
        return out


# ---------------------------------------------------------------------------
# Parsing batch entries
# ---------------------------------------------------------------------------

def _invalid(message: str, child_index: Optional[int] = None) -> PublishError:
    return PublishError(ErrorCode.VALIDATION, message, stage="validate", child_index=child_index)


def _text(value) -> str:
    return str(value).strip() if value is not None else ""


def extract_media_items(param) -> list:
    """
    Pull the list of carousel children out of a media_items parameter.

    Accepts a plain list, {"item": [...]}, {"item": {...}} or {"values": [...]}.
    Raises a validation error when the parameter is missing or malformed.
    """
    if isinstance(param, list):
        return param
    if not isinstance(param, dict) or not param:
        raise _invalid("No media items provided. Add at least 2 media items "
                       "(images or videos) to the carousel.")

    item = param.get("item")
    if isinstance(item, list):
        return item
    if isinstance(item, dict):
        return [item]
    if isinstance(param.get("values"), list):
        return param["values"]

    raise _invalid(f"Media items parameter is missing or invalid: {param!r}")


def parse_carousel_child(raw, position: int) -> CarouselChild:
    """Validate one carousel child. position is 1-based."""
    if not isinstance(raw, dict):
        raise _invalid(f"Media item {position} is invalid.", position)

    child_type = _text(raw.get("type", "IMAGE")).upper()
    if child_type == "IMAGE":
        url = _text(raw.get("image_url", raw.get("imageUrl")))
        if not url:
            raise _invalid(f"Media item {position} is missing imageUrl.", position)
    elif child_type == "VIDEO":
        url = _text(raw.get("video_url", raw.get("videoUrl")))
        if not url:
            raise _invalid(f"Media item {position} is missing videoUrl.", position)
    else:
        raise _invalid(f"Media item {position} has invalid type: {raw.get('type')}. "
                       "Must be IMAGE or VIDEO.", position)
    return CarouselChild(child_type, url)


def parse_carousel(param) -> CarouselMedia:
    raw_items = extract_media_items(param)
    if len(raw_items) < CAROUSEL_MIN_ITEMS:
        raise _invalid(f"Carousel posts require at least {CAROUSEL_MIN_ITEMS} media items. "
                       f"Found: {len(raw_items)}.")
    if len(raw_items) > CAROUSEL_MAX_ITEMS:
        raise _invalid(f"Carousel posts can contain at most {CAROUSEL_MAX_ITEMS} media items. "
                       f"Found: {len(raw_items)}.")
    children = tuple(parse_carousel_child(raw, i) for i, raw in enumerate(raw_items, start=1))
    return CarouselMedia(children)


def work_item_from_entry(entry: dict, defaults: Optional[dict] = None) -> WorkItem:
    """
    Build a WorkItem from a batch entry such as
    {"resource": "reels", "node": "1784...", "caption": "...", "video_url": "https://..."}.

    defaults supplies node / graph_api_version when the entry omits them.
    """
    if not isinstance(entry, dict):
        raise _invalid(f"Batch entry must be an object, got {type(entry).__name__}.")

    defaults = defaults or {}
    resource = _text(entry.get("resource")).lower()
    if resource not in RESOURCES:
        raise _invalid(f"Unsupported resource: {entry.get('resource')!r}. "
                       f"Must be one of: {', '.join(RESOURCES)}.")

    node = _text(entry.get("node") or defaults.get("node") or INSTAGRAM_USER_ID)
    if not node:
        raise _invalid("No node given and INSTAGRAM_USER_ID is not set.")

    version = _text(entry.get("graph_api_version") or defaults.get("graph_api_version")
                    or GRAPH_API_VERSION)
    caption = entry.get("caption") or ""

    if resource == "image":
        url = _text(entry.get("image_url"))
        if not url:
            raise _invalid("Image posts require image_url.")
        media = ImageMedia(url)
    elif resource in ("reels", "stories"):
        url = _text(entry.get("video_url"))
        if not url:
            raise _invalid(f"{resource.capitalize()} posts require video_url.")
        media = VideoMedia(url, "REELS" if resource == "reels" else "STORIES")
    else:
        media = parse_carousel(entry.get("media_items"))

    return WorkItem(node=node, caption=caption, media=media, graph_api_version=version)
