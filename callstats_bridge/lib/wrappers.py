from __future__ import annotations
from functools import wraps
import asyncio
import logging
from typing import Callable, Any, Coroutine, Set, Tuple, Awaitable, Type, Union

logger = logging.getLogger(__name__)


# pylint: disable=unsubscriptable-object
def retry_coroutine(retryable_exceptions: Union[Tuple[Type[Exception], ...], Type[Exception]],
                    tries: int = 3, delay_secs: float = 1, backoff: int = 2,
                    max_delay_secs: float = 60
                    ) -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., Awaitable[Any]]]:
  """Returns a decorator that retries a coroutine function on the provided exception(s), making at
  most :tries attempts.

  The delay before retry i (starting at i=0) is min(:delay_secs * :backoff^i, :max_delay_secs).
  The exception of the final attempt is propagated to the caller.

  :param retryable_exceptions: exception type(s) to retry on
  :param tries: max number of attempts
  :param delay_secs: initial delay between attempts
  :param backoff: backoff multiplier
  :param max_delay_secs: upper bound for the delay between two attempts
  :return: retry decorator for coroutine functions
  """
  def retry_decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
    @wraps(func)
    async def retry_function(*args: Any, **kwargs: Any) -> Any:
      attempt, idelay = 1, delay_secs
      while attempt < tries:
        try:
          return await func(*args, **kwargs)
        except retryable_exceptions as err:
          logger.warning(f'Attempt {attempt}/{tries} of {func.__name__} failed with '
                         f'{type(err).__name__}: {err} - retrying in {idelay} seconds')
          await asyncio.sleep(idelay)
          attempt += 1
          idelay = min(idelay * backoff, max_delay_secs)
      return await func(*args, **kwargs)
    return retry_function
  return retry_decorator


def fire_and_forget(coro: Coroutine, name: str, pending_tasks: Set[asyncio.Task]) -> asyncio.Task:
  """Schedules :coro as a background task on the running loop without awaiting it.

  The task is held in :pending_tasks until it completes so it is not garbage collected while in
  flight; its outcome is logged by task_done_callback.

  :param coro: the coroutine to run in the background
  :param name: task name, used in log messages
  :param pending_tasks: set of in-flight tasks owned by the caller
  :return: the scheduled asyncio.Task
  """
  task = asyncio.get_running_loop().create_task(coro, name=name)
  pending_tasks.add(task)
  task.add_done_callback(pending_tasks.discard)
  task.add_done_callback(task_done_callback)
  return task


def task_done_callback(task: asyncio.Task) -> None:
  """Logs the result of a completed background task.

  :param task: the completed asyncio.Task
  :return: None
  """
  if task.cancelled():
    logger.info(f'Task {task.get_name()} was cancelled')
    return
  err = task.exception()
  if err is not None:
    logger.error(f'Task {task.get_name()} failed with {type(err).__name__}: {err}')
  else:
    logger.debug(f'{task.get_name()} done, result: {task.result()}')
