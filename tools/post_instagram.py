"""
post_instagram.py — Publish media to Instagram via the Facebook Graph API.

Publishing is asynchronous on Instagram's side:
  1. create a media container (one per carousel child, then the parent)
  2. poll the container until it is FINISHED / PUBLISHED / READY
  3. POST media_publish, retrying while Graph says the media is not ready yet

Requires INSTAGRAM_ACCESS_TOKEN in .env. Media must be hosted at public URLs.

Usage (standalone test):
    python tools/post_instagram.py image <image_url> "caption text"
    python tools/post_instagram.py reels <video_url> "caption text"
    python tools/post_instagram.py stories <video_url> "caption text"
    python tools/post_instagram.py carousel "caption text" <url1> <url2> [...]
"""

import logging
import sys
import time

from config import GRAPH_HOST, INSTAGRAM_ACCESS_TOKEN, INSTAGRAM_USER_ID
from errors import PUBLISH_FAILED_NOTE, ErrorCode, PublishError, error_from_graph
from graph_client import GraphApiError, GraphClient
from media_types import (
    CarouselChild, CarouselMedia, ImageMedia, MediaKind, PublishPolicy, VideoMedia,
    WorkItem, classify_status, policy_for, work_item_from_entry,
)

logger = logging.getLogger(__name__)

STATUS_FIELDS = ("status_code", "status")
NOT_READY_PHRASES = ("not ready", "not finished", "not yet")
NOT_READY_CODE = 900
NOT_READY_SUBCODE = 2207055


def build_media_params(media, caption: str = "") -> dict:
    """Query parameters for the /media container request of one media variant."""
    if isinstance(media, ImageMedia):
        return {"caption": caption, "image_url": media.image_url}
    if isinstance(media, VideoMedia):
        return {"caption": caption, "video_url": media.video_url, "media_type": media.media_type}
    if isinstance(media, CarouselChild):
        if media.child_type == "VIDEO":
            return {"is_carousel_item": True, "video_url": media.url, "media_type": "VIDEO"}
        return {"is_carousel_item": True, "image_url": media.url}
    raise TypeError(f"No container params for {type(media).__name__}")


def build_carousel_params(child_ids: list[str], caption: str) -> dict:
    return {"media_type": "CAROUSEL", "children": ",".join(child_ids), "caption": caption}


# ---------------------------------------------------------------------------
# Container creation
# ---------------------------------------------------------------------------

def create_container(client, node: str, params: dict, *, version: str,
                     host: str = GRAPH_HOST, stage: str = "create", child_index=None) -> str:
    """POST /{node}/media and return the container (creation) id. Never retries."""
    try:
        resp = client.request("POST", f"https://{host}/{version}/{node}/media", params=params)
    except GraphApiError as e:
        raise error_from_graph(e, stage, child_index=child_index) from e

    if not resp.is_json:
        raise PublishError(ErrorCode.UNPARSEABLE_RESPONSE,
                           f"Media creation response body is not valid JSON: {resp.value!r}",
                           stage=stage, child_index=child_index)

    creation_id = resp.value.get("id")
    if not creation_id:
        raise PublishError(ErrorCode.NO_CREATION_ID,
                           f"Media creation response did not contain an id: {resp.value}",
                           stage=stage, child_index=child_index)

    logger.info("Container created: creation_id=%s (%s)", creation_id, stage)
    return str(creation_id)


# ---------------------------------------------------------------------------
# Readiness polling
# ---------------------------------------------------------------------------

def wait_until_ready(client, creation_id: str, policy: PublishPolicy, *, version: str,
                     host: str = GRAPH_HOST, sleep=time.sleep,
                     stage: str = "poll", child_index=None) -> None:
    """
    Poll a container until Graph reports it ready.

    Raises PublishError with CONTAINER_ERROR as soon as the container reports
    ERROR/FAILED, or TIMEOUT after policy.max_poll_attempts pending checks.
    """
    url = f"https://{host}/{version}/{creation_id}"
    last_status = None

    for attempt in range(1, policy.max_poll_attempts + 1):
        try:
            resp = client.request("GET", url, params={"fields": ",".join(STATUS_FIELDS)})
        except GraphApiError as e:
            raise error_from_graph(e, stage, creation_id=creation_id, child_index=child_index) from e

        if not resp.is_json:
            raise PublishError(ErrorCode.UNPARSEABLE_RESPONSE,
                               f"Container status response body is not valid JSON: {resp.value!r}",
                               stage=stage, creation_id=creation_id, child_index=child_index)

        values = [resp.value.get(f) for f in STATUS_FIELDS]
        statuses = [v.upper() for v in values if isinstance(v, str)]
        if statuses:
            last_status = statuses[0]

        state = classify_status(values)
        if state == "ready":
            logger.info("Container %s ready after %d check(s)", creation_id, attempt)
            return
        if state == "error":
            raise PublishError(
                ErrorCode.CONTAINER_ERROR,
                f"Media container reported error status ({', '.join(statuses)}) "
                "while waiting to publish.",
                stage=stage, creation_id=creation_id, child_index=child_index,
                error={"status": ", ".join(statuses)},
            )

        logger.info("Container %s still %s (check %d/%d)", creation_id,
                    last_status or "pending", attempt, policy.max_poll_attempts)
        if attempt < policy.max_poll_attempts:
            sleep(policy.poll_interval_ms / 1000)

    raise PublishError(
        ErrorCode.TIMEOUT,
        "Timed out waiting for container to become ready. "
        f"Last known status: {last_status or 'unknown'}.",
        stage=stage, creation_id=creation_id, child_index=child_index,
    )


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------

def is_media_not_ready_error(exc) -> bool:
    """True when a failed publish looks like the container simply is not ready yet."""
    error = getattr(exc, "error", None)
    if not error:
        return False
    message = str(error.get("message") or "").lower()
    return (
        any(phrase in message for phrase in NOT_READY_PHRASES)
        or error.get("code") == NOT_READY_CODE
        or error.get("error_subcode") == NOT_READY_SUBCODE
    )


def publish_container(client, node: str, creation_id: str, policy: PublishPolicy, *,
                      version: str, host: str = GRAPH_HOST, sleep=time.sleep) -> dict:
    """
    POST /{node}/media_publish for a ready container.

    Retries only while the failure is a "not ready" error and attempts remain.
    """
    url = f"https://{host}/{version}/{node}/media_publish"
    last_error = None

    for attempt in range(1, policy.publish_max_attempts + 1):
        try:
            resp = client.request("POST", url, params={"creation_id": creation_id})
        except GraphApiError as e:
            if not is_media_not_ready_error(e):
                raise error_from_graph(e, "publish", code=ErrorCode.PUBLISH_FAILED,
                                       creation_id=creation_id, note=PUBLISH_FAILED_NOTE) from e
            last_error = e
            if attempt < policy.publish_max_attempts:
                logger.warning("Publish attempt %d/%d for %s: media not ready (%s), retrying",
                               attempt, policy.publish_max_attempts, creation_id, e.message)
                sleep(policy.publish_retry_delay_ms / 1000)
            continue

        if not resp.is_json:
            raise PublishError(ErrorCode.UNPARSEABLE_RESPONSE,
                               f"Media publish response body is not valid JSON: {resp.value!r}",
                               stage="publish", creation_id=creation_id)

        logger.info("Published creation_id=%s → media_id=%s", creation_id, resp.value.get("id"))
        return resp.value

    # every attempt failed with a "not ready" error
    raise error_from_graph(
        last_error, "publish", code=ErrorCode.PUBLISH_FAILED,
        message=f"Failed to publish media after {policy.publish_max_attempts} attempts: {last_error.message}",
        creation_id=creation_id, note=PUBLISH_FAILED_NOTE,
    )


# ---------------------------------------------------------------------------
# One work item, end to end
# ---------------------------------------------------------------------------

def _create_carousel(client, item: WorkItem, host: str, sleep) -> str:
    child_policy = policy_for(MediaKind.CAROUSEL_CHILD)
    child_ids = []

    for position, child in enumerate(item.media.children, start=1):
        child_id = create_container(client, item.node, build_media_params(child),
                                    version=item.graph_api_version, host=host,
                                    stage="create_child", child_index=position)
        wait_until_ready(client, child_id, child_policy, version=item.graph_api_version,
                         host=host, sleep=sleep, stage="poll_child", child_index=position)
        child_ids.append(child_id)

    return create_container(client, item.node, build_carousel_params(child_ids, item.caption),
                            version=item.graph_api_version, host=host, stage="create_parent")


def publish_item(client, item: WorkItem, *, host: str = GRAPH_HOST, sleep=time.sleep) -> dict:
    """
    Create, wait for and publish one work item. Returns the publish response.

    Stops at the first failure: a carousel whose child 2 fails never creates
    child 3 or the parent container.
    """
    if isinstance(item.media, CarouselMedia):
        logger.info("Carousel with %d items → %s", len(item.media.children), item.node)
        creation_id = _create_carousel(client, item, host, sleep)
    else:
        logger.info("%s → %s", item.kind.value, item.node)
        creation_id = create_container(client, item.node, build_media_params(item.media, item.caption),
                                       version=item.graph_api_version, host=host,
                                       stage="create_parent")

    wait_until_ready(client, creation_id, item.policy, version=item.graph_api_version,
                     host=host, sleep=sleep, stage="poll_parent")
    return publish_container(client, item.node, creation_id, item.policy,
                             version=item.graph_api_version, host=host, sleep=sleep)


def main():
    args = sys.argv[1:]
    if len(args) < 3 or args[0] not in ("image", "reels", "stories", "carousel"):
        print("Usage: python tools/post_instagram.py image|reels|stories <url> \"caption\"")
        print("       python tools/post_instagram.py carousel \"caption\" <url1> <url2> [...]")
        sys.exit(1)

    if not INSTAGRAM_ACCESS_TOKEN or not INSTAGRAM_USER_ID:
        print("ERROR: INSTAGRAM_USER_ID and INSTAGRAM_ACCESS_TOKEN must be set in .env")
        sys.exit(1)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    resource = args[0]
    entry = {"resource": resource, "node": INSTAGRAM_USER_ID}
    if resource == "image":
        entry.update(image_url=args[1], caption=args[2])
    elif resource in ("reels", "stories"):
        entry.update(video_url=args[1], caption=args[2])
    else:
        entry["caption"] = args[1]
        entry["media_items"] = [
            {"type": "VIDEO", "video_url": url} if url.lower().endswith((".mp4", ".mov"))
            else {"type": "IMAGE", "image_url": url}
            for url in args[2:]
        ]

    print(f"Publishing {resource} to Instagram...")
    try:
        result = publish_item(GraphClient(), work_item_from_entry(entry))
    except PublishError as e:
        print(f"Failed: {e}")
        sys.exit(1)

    print(f"Success! Media ID: {result.get('id')}")


if __name__ == "__main__":
    main()
