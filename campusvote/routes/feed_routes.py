import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, WebSocket
from starlette.concurrency import run_in_threadpool

from campusvote.config import (
    FEED_DEFAULT_LIMIT,
    FEED_MAX_LIMIT,
    FEED_RETRY_INITIAL_DELAY,
    FEED_RETRY_MAX_DELAY,
)
from campusvote.date_utils import relative_time
from campusvote.dependencies import get_feed, get_now
from campusvote.exceptions import Unavailable
from campusvote.models.vote_model import FeedEntry, FeedEntryOut
from campusvote.services.feed import ActivityFeed, FeedSubscription, SubscriptionState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/feed", tags=["Activity Feed"])


def _present(entries: List[FeedEntry], now: datetime) -> List[FeedEntryOut]:
    return [
        FeedEntryOut(**entry.model_dump(), relative_time=relative_time(entry.timestamp, now))
        for entry in entries
    ]


def _frame(subscription: FeedSubscription, entries: List[FeedEntry], now: datetime) -> dict:
    return {
        "state": subscription.state.value,
        "error": subscription.error.message if subscription.error else None,
        "entries": [e.model_dump(mode="json") for e in _present(entries, now)],
    }


@router.get("/recent", response_model=List[FeedEntryOut])
def recent_activity(
    election_id: Optional[str] = None,
    limit: int = Query(FEED_DEFAULT_LIMIT, ge=1, le=FEED_MAX_LIMIT),
    feed: ActivityFeed = Depends(get_feed),
    now: datetime = Depends(get_now),
):
    """Newest voting activity, newest first."""
    return _present(feed.recent(election_id, limit), now)


async def _push_updates(websocket: WebSocket, subscription: FeedSubscription, wakeups: asyncio.Queue) -> None:
    clock = websocket.app.state.clock
    delay = FEED_RETRY_INITIAL_DELAY
    while not subscription.closed:
        await websocket.send_json(_frame(subscription, subscription.entries, clock()))
        if subscription.state is SubscriptionState.ERROR:
            await asyncio.sleep(delay)
            delay = min(delay * 2, FEED_RETRY_MAX_DELAY)
            if await run_in_threadpool(subscription.refresh):
                delay = FEED_RETRY_INITIAL_DELAY
        # idle sockets park here on the event loop, not on a worker thread
        await wakeups.get()
        while not wakeups.empty():
            wakeups.get_nowait()


@router.websocket("/ws")
async def feed_socket(websocket: WebSocket, election_id: Optional[str] = None, limit: int = FEED_DEFAULT_LIMIT):
    """Live feed: one JSON frame per change, each carrying the full visible window."""
    limit = max(1, min(limit, FEED_MAX_LIMIT))
    await websocket.accept()
    try:
        feed = get_feed(websocket)
    except Unavailable as e:
        logger.warning(f"Feed websocket refused: {e}")
        await websocket.send_json({"state": SubscriptionState.ERROR.value, "error": e.message, "entries": []})
        await websocket.close(code=1011)
        return

    loop = asyncio.get_running_loop()
    wakeups: asyncio.Queue = asyncio.Queue()

    def wake(window: List[FeedEntry]) -> None:
        loop.call_soon_threadsafe(wakeups.put_nowait, None)

    subscription = await run_in_threadpool(feed.subscribe, election_id, limit)
    subscription.add_listener(wake)
    pusher = asyncio.create_task(_push_updates(websocket, subscription, wakeups))
    logger.info(f"Feed websocket opened (election={election_id}, limit={limit})")
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        subscription.remove_listener(wake)
        subscription.close()
        pusher.cancel()
        await asyncio.gather(pusher, return_exceptions=True)
        logger.info(f"Feed websocket closed (election={election_id})")
