import asyncio

import pytest

from link2vault.exceptions import NoReceiverError, TabClosedError
from link2vault.tabs.playwright import load_agent_script
from link2vault.tabs.pool import TabPool

from conftest import FakeTabBrowser, agent_reply

SOCIAL_URLS = [f"https://x.com/user/status/{i}" for i in range(8)]


@pytest.mark.asyncio
async def test_preload_respects_ceiling(sleeps):
    browser = FakeTabBrowser()
    pool = TabPool(browser, sleep=sleeps)

    tasks = pool.preload_tabs(SOCIAL_URLS)
    await asyncio.gather(*tasks)

    assert len(browser.created) == 5
    assert pool.preloaded_count == 5


@pytest.mark.asyncio
async def test_preload_skips_static_and_duplicate_urls(sleeps):
    browser = FakeTabBrowser()
    pool = TabPool(browser, sleep=sleeps)

    tasks = pool.preload_tabs(["https://example.com/a", SOCIAL_URLS[0], SOCIAL_URLS[0]])
    tasks += pool.preload_tabs([SOCIAL_URLS[0]])
    await asyncio.gather(*tasks)

    assert browser.created == [SOCIAL_URLS[0]]


@pytest.mark.asyncio
async def test_claiming_a_preloaded_tab_creates_nothing(sleeps):
    browser = FakeTabBrowser()
    pool = TabPool(browser, sleep=sleeps)
    await asyncio.gather(*pool.preload_tabs(SOCIAL_URLS[:2]))
    assert len(browser.created) == 2

    result = await pool.extract_via_dom(SOCIAL_URLS[0])

    assert result.ok
    assert len(browser.created) == 2
    assert browser.closed == [1]
    assert pool.preloaded_count == 1
    assert pool.active_count == 0


@pytest.mark.asyncio
async def test_claim_refills_preload_slot(sleeps):
    browser = FakeTabBrowser()
    pool = TabPool(browser, sleep=sleeps)
    await asyncio.gather(*pool.preload_tabs(SOCIAL_URLS))

    await pool.extract_via_dom(SOCIAL_URLS[0])
    await asyncio.sleep(0)

    assert len(browser.created) == 6
    assert SOCIAL_URLS[5] in browser.created


@pytest.mark.asyncio
async def test_on_demand_tab_is_created_and_closed(sleeps):
    browser = FakeTabBrowser()
    pool = TabPool(browser, sleep=sleeps)

    result = await pool.extract_via_dom("https://www.linkedin.com/posts/abc")

    assert result.ok
    assert browser.created == ["https://www.linkedin.com/posts/abc"]
    assert browser.closed == [1]
    assert pool.tracked_urls == frozenset()


@pytest.mark.asyncio
async def test_retry_fail_fail_succeed(sleeps):
    url = SOCIAL_URLS[0]
    failure = agent_reply(url, status="failed", content="", error="Tweet not rendered yet")
    browser = FakeTabBrowser(replies=[failure, failure, agent_reply(url)])
    pool = TabPool(browser, sleep=sleeps)
    retries = []

    result = await pool.extract_via_dom(url, on_retry=lambda attempt, total: retries.append((attempt, total)))

    assert result.ok
    assert retries == [(1, 8), (2, 8)]
    assert sleeps.delays == [1.0, 5.0]
    assert browser.closed == [1]


@pytest.mark.asyncio
async def test_exhausted_retries_report_timeout(sleeps):
    url = SOCIAL_URLS[0]
    failure = agent_reply(url, status="failed", content="", error="Tweet not rendered yet")
    browser = FakeTabBrowser(replies=[failure] * 3)
    pool = TabPool(browser, max_attempts=3, sleep=sleeps)

    result = await pool.extract_via_dom(url)

    assert not result.ok
    assert result.error.startswith("Timed out after 3 attempts")
    assert browser.closed == [1]


@pytest.mark.asyncio
async def test_missing_agent_is_reinjected(sleeps):
    browser = FakeTabBrowser(agent_installed=False)
    pool = TabPool(browser, sleep=sleeps)

    result = await pool.extract_via_dom(SOCIAL_URLS[0])

    assert result.ok
    assert browser.injections == [(1, "x")]
    assert browser.closed == [1]


@pytest.mark.asyncio
async def test_closed_tab_is_terminal(sleeps):
    browser = FakeTabBrowser(replies=[TabClosedError("Tab 1 is closed")])
    pool = TabPool(browser, sleep=sleeps)
    retries = []

    result = await pool.extract_via_dom(SOCIAL_URLS[0], on_retry=lambda a, t: retries.append(a))

    assert not result.ok
    assert "Tab closed" in result.error
    assert retries == []
    assert browser.closed == [1]


@pytest.mark.asyncio
async def test_repeated_creation_refusal_fails(sleeps):
    browser = FakeTabBrowser(create_failures=10)
    pool = TabPool(browser, sleep=sleeps)

    result = await pool.extract_via_dom(SOCIAL_URLS[0])

    assert not result.ok
    assert "Could not open tab" in result.error
    assert browser.closed == []


@pytest.mark.asyncio
async def test_transient_creation_refusal_recovers(sleeps):
    browser = FakeTabBrowser(create_failures=1)
    pool = TabPool(browser, sleep=sleeps)

    result = await pool.extract_via_dom(SOCIAL_URLS[0])

    assert result.ok
    assert len(browser.created) == 1


@pytest.mark.asyncio
async def test_failed_preload_frees_slot_for_next_candidate(sleeps):
    browser = FakeTabBrowser(create_failures=1)
    pool = TabPool(browser, max_preload=2, sleep=sleeps)

    tasks = pool.preload_tabs(SOCIAL_URLS[:3])
    await asyncio.gather(*tasks)
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    assert browser.created == SOCIAL_URLS[1:3]
    assert pool.preloaded_count == 2


@pytest.mark.asyncio
async def test_on_demand_ceiling(sleeps):
    gate = asyncio.Event()
    in_flight = 0
    peak = 0

    class SlowBrowser(FakeTabBrowser):
        async def send_message(self, tab_id, message, timeout):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await gate.wait()
            in_flight -= 1
            return await super().send_message(tab_id, message, timeout)

    browser = SlowBrowser()
    pool = TabPool(browser, max_concurrent=2, sleep=sleeps)

    tasks = [asyncio.create_task(pool.extract_via_dom(url)) for url in SOCIAL_URLS[:4]]
    for _ in range(5):
        await asyncio.sleep(0)
    assert len(browser.open_tabs) == 2

    gate.set()
    results = await asyncio.gather(*tasks)

    assert peak == 2
    assert all(r.ok for r in results)
    assert len(browser.closed) == 4


@pytest.mark.asyncio
async def test_clear_all_closes_every_tab_once(sleeps):
    browser = FakeTabBrowser()
    pool = TabPool(browser, sleep=sleeps)
    await asyncio.gather(*pool.preload_tabs(SOCIAL_URLS[:3]))

    await pool.clear_all_processing_tabs()
    await pool.clear_all_processing_tabs()

    assert sorted(browser.closed) == [1, 2, 3]
    assert pool.tracked_urls == frozenset()


@pytest.mark.asyncio
async def test_clear_during_extraction_closes_tab_once(sleeps):
    pool_ref = {}

    class ClearingBrowser(FakeTabBrowser):
        async def send_message(self, tab_id, message, timeout):
            await pool_ref["pool"].clear_all_processing_tabs()
            raise NoReceiverError("gone")

    browser = ClearingBrowser()
    pool = TabPool(browser, sleep=sleeps)
    pool_ref["pool"] = pool

    result = await pool.extract_via_dom(SOCIAL_URLS[0])

    assert not result.ok
    assert browser.closed == [1]


def test_agent_script_prefers_platform_override(tmp_path):
    (tmp_path / "x.js").write_text("window.__link2vaultAgent = () => ({});", encoding="utf-8")

    assert "() => ({})" in load_agent_script("x", tmp_path)
    assert "EXTRACTION_RESULT" in load_agent_script("linkedin", tmp_path)
    assert "__link2vaultAgent" in load_agent_script("reddit")


@pytest.mark.asyncio
async def test_no_sixth_tab_before_first_extraction_finishes(sleeps):
    creations_seen = []

    class CountingBrowser(FakeTabBrowser):
        async def send_message(self, tab_id, message, timeout):
            await asyncio.sleep(0)
            creations_seen.append(len(self.created))
            return await super().send_message(tab_id, message, timeout)

    browser = CountingBrowser()
    pool = TabPool(browser, sleep=sleeps)
    pool.preload_tabs(SOCIAL_URLS)

    result = await pool.extract_via_dom(SOCIAL_URLS[0])

    assert result.ok
    assert creations_seen and max(creations_seen) <= 5
    await asyncio.sleep(0)
    assert len(browser.created) == 6


@pytest.mark.asyncio
async def test_reinjection_budget_then_scheduled_backoff(sleeps):
    class DeafBrowser(FakeTabBrowser):
        async def inject_agent(self, tab_id, platform):
            # the script loads but never answers
            self.injections.append((tab_id, platform))

    browser = DeafBrowser(agent_installed=False)
    pool = TabPool(browser, max_attempts=2, sleep=sleeps)
    retries = []

    result = await pool.extract_via_dom(SOCIAL_URLS[0], on_retry=lambda a, t: retries.append(a))

    assert not result.ok
    assert result.error.startswith("Timed out after 2 attempts")
    assert len(browser.injections) == 6
    assert sleeps.delays == [0.5, 0.5, 0.5, 1.0, 0.5, 0.5, 0.5]
    assert retries == [1]
    assert browser.closed == [1]
