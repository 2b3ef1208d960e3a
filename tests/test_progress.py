import asyncio

import pytest

from link2vault.models import UrlStatus
from link2vault.progress import ProgressChannel, ProgressEvent


def _event(status, index=0):
    return ProgressEvent(url="https://a.com", status=status, index=index, total=1)


@pytest.mark.asyncio
async def test_every_subscriber_sees_events_in_order():
    channel = ProgressChannel()
    first = channel.subscribe()
    second = channel.subscribe()

    for status in (UrlStatus.EXTRACTING, UrlStatus.SUMMARIZING, UrlStatus.DONE):
        channel.publish(_event(status))
    channel.close()

    seen_first = [e.status async for e in first]
    seen_second = [e.status async for e in second]
    assert seen_first == seen_second == [UrlStatus.EXTRACTING, UrlStatus.SUMMARIZING, UrlStatus.DONE]


@pytest.mark.asyncio
async def test_subscriber_waits_for_events():
    channel = ProgressChannel()
    events = channel.subscribe()
    reader = asyncio.create_task(events.__anext__())
    await asyncio.sleep(0)
    assert not reader.done()

    channel.publish(_event(UrlStatus.EXTRACTING))
    assert (await reader).status is UrlStatus.EXTRACTING


@pytest.mark.asyncio
async def test_closed_channel():
    channel = ProgressChannel()
    channel.close()
    channel.close()

    assert channel.closed
    assert [e async for e in channel.subscribe()] == []
    with pytest.raises(RuntimeError):
        channel.publish(_event(UrlStatus.DONE))


def test_event_to_dict():
    assert _event(UrlStatus.CREATING, index=2).to_dict() == {
        "url": "https://a.com", "status": "creating", "index": 2, "total": 1,
    }
