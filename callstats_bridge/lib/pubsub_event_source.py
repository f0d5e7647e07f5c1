from __future__ import annotations
import asyncio
import json
import logging
from collections.abc import Callable
from typing import List

import google.api_core.exceptions

from callstats_bridge.lib import metrics, pubsub_subscriber
from callstats_bridge.lib.exceptions import ValidationError
from callstats_bridge.lib.monitoring import constants
from callstats_bridge.lib.monitoring.events import Event, parse_event

logger = logging.getLogger(__name__)

EventHandler = Callable[[Event], None]


class PubSubEventSource:
  """Delivers conference lifecycle events published as JSON messages on a Pub/Sub subscription.

  Messages are delivered one at a time, in the order they were pulled, by calling every subscribed
  handler synchronously on the event loop thread. Each pulled batch is acknowledged once all of its
  messages were delivered. If a handler raises, the messages delivered so far are acknowledged, the
  remaining ones are NACKed for redelivery and the error propagates.
  """

  def __init__(self, gcp_project_id: str, pubsub_subscription_id: str,
               max_messages: int = 10) -> None:
    self.gcp_project_id = gcp_project_id
    self.pubsub_subscription_id = pubsub_subscription_id
    self.max_messages = max_messages
    self.handlers: List[EventHandler] = []

  def subscribe(self, handler: EventHandler) -> None:
    self.handlers.append(handler)

  async def listen(self, should_exit: asyncio.Event) -> None:
    """Pulls and delivers messages until :should_exit is set.

    The pull() calls are blocking, so they run in the default executor. Termination is checked
    between pull() calls.

    :param should_exit: set to stop pulling
    :return: None
    """
    loop = asyncio.get_running_loop()
    try:
      subscriber, pubsub_subscription_path = await loop.run_in_executor(
          None,
          pubsub_subscriber.create_subscriber,
          self.gcp_project_id,
          self.pubsub_subscription_id)
      with subscriber:
        logger.info(f'Listening for conference events on {pubsub_subscription_path}')
        while not should_exit.is_set():
          try:
            subscriber_pull_response = await loop.run_in_executor(
                None,
                pubsub_subscriber.pull,
                subscriber,
                pubsub_subscription_path,
                self.max_messages)
          except google.api_core.exceptions.DeadlineExceeded:
            continue

          received_messages = subscriber_pull_response.received_messages
          if not received_messages:
            continue
          ack_ids = [msg.ack_id for msg in received_messages]
          delivered = 0
          try:
            for msg in received_messages:
              self.deliver(msg.message.data)
              delivered += 1
          except Exception:
            # the failed message and the rest of the batch are redelivered
            logger.exception(f'Event handler failed, NACKing {len(ack_ids) - delivered} message(s)')
            await loop.run_in_executor(
                None,
                pubsub_subscriber.acknowledge_pubsub_messages,
                subscriber,
                pubsub_subscription_path,
                ack_ids[delivered:],
                constants.PUB_SUB_ACK_TYPE_NACK)
            raise
          finally:
            if delivered:
              await loop.run_in_executor(
                  None,
                  pubsub_subscriber.acknowledge_pubsub_messages,
                  subscriber,
                  pubsub_subscription_path,
                  ack_ids[:delivered])
    except google.api_core.exceptions.GoogleAPIError as err:
      metrics.report_pubsub_error()
      raise err
    logger.info('Exiting Pub/Sub event source loop')

  def deliver(self, message_data: bytes) -> None:
    """Decodes one message into an Event and hands it to the subscribed handlers.

    Undecodable messages are logged and dropped.

    :param message_data: raw Pub/Sub message payload, a UTF-8 JSON object
    :return: None
    """
    try:
      event = parse_event(json.loads(message_data.decode(constants.UTF_8)))
    except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as err:
      logger.error(f'Dropping undecodable conference event message {message_data!r}: {err}')
      metrics.report_event_source_decode_error()
      return

    for handler in self.handlers:
      handler(event)
