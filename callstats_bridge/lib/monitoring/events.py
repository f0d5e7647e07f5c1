from __future__ import annotations
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from callstats_bridge.lib.exceptions import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Room:
  # The room description doubles as the conference id reported to the monitoring backend
  description: Optional[str]


@dataclass(frozen=True)
class User:
  username: Optional[str]


@dataclass(frozen=True)
# pylint: disable=unsubscriptable-object
class Event:
  """Immutable conference lifecycle event, as produced by the signalling layer.

  The shape of :data depends on :type (one of constants.EVENT_TYPES; unknown types are kept as-is so
  the dispatcher can log them). :room is present on every conference-scoped event and :user on
  participant-scoped ones.
  """
  type: str
  data: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
  room: Optional[Room] = None
  user: Optional[User] = None

  @property
  def conference_id(self) -> Optional[str]:
    return self.room.description if self.room is not None else None


def parse_event(payload: Any) -> Event:
  """Builds an Event from its decoded JSON representation:

  {
    'type': <string>,
    'data': {...},
    'room': {'description': <conference id>},
    'user': {'username': <string>}
  }

  Only 'type' is required; 'room' and 'user' may be omitted or null.

  :param payload: the decoded JSON object
  :return: the parsed Event
  """
  if not isinstance(payload, dict):
    raise ValidationError(f'Event payload must be an object, got {type(payload).__name__}')
  event_type = payload.get('type')
  if not isinstance(event_type, str) or not event_type:
    raise ValidationError(f'Event payload is missing its type: {payload}')

  data = payload.get('data') or {}
  if not isinstance(data, dict):
    raise ValidationError(f'Event data must be an object for {event_type} event: {data}')

  room_payload = payload.get('room')
  room = Room(room_payload.get('description')) if isinstance(room_payload, dict) else None
  user_payload = payload.get('user')
  user = User(user_payload.get('username')) if isinstance(user_payload, dict) else None

  return Event(type=event_type, data=MappingProxyType(dict(data)), room=room, user=user)
