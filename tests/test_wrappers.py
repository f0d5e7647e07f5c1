import asyncio

import pytest

from callstats_bridge.lib import wrappers


def test_retry_coroutine_retries_until_success():
  attempts = []

  @wrappers.retry_coroutine(ConnectionError, tries=3, delay_secs=0)
  async def flaky():
    attempts.append(1)
    if len(attempts) < 3:
      raise ConnectionError('not yet')
    return 'ok'

  assert asyncio.run(flaky()) == 'ok'
  assert len(attempts) == 3


def test_retry_coroutine_raises_after_last_attempt():
  attempts = []

  @wrappers.retry_coroutine(ConnectionError, tries=2, delay_secs=0)
  async def broken():
    attempts.append(1)
    raise ConnectionError('down')

  with pytest.raises(ConnectionError):
    asyncio.run(broken())
  assert len(attempts) == 2


def test_retry_coroutine_does_not_retry_other_exceptions():
  attempts = []

  @wrappers.retry_coroutine(ConnectionError, tries=3, delay_secs=0)
  async def broken():
    attempts.append(1)
    raise ValueError('bad input')

  with pytest.raises(ValueError):
    asyncio.run(broken())
  assert len(attempts) == 1


def test_fire_and_forget_tracks_pending_tasks():
  pending_tasks = set()

  async def work():
    await asyncio.sleep(0)
    return 'done'

  async def run():
    task = wrappers.fire_and_forget(work(), 'work', pending_tasks)
    assert task in pending_tasks
    result = await task
    await asyncio.sleep(0)
    return result

  assert asyncio.run(run()) == 'done'
  assert pending_tasks == set()
