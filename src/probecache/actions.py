"""Monitoring agent action dispatch.

Item scripts of a monitoring agent are invoked with an action name and must
print one answer string. This module routes the four standard actions to
caller callbacks and renders their results in the form the agent expects.

Answers:
    discovery   -> {"data": [...]} (compact JSON)
    check_conf  -> "1" if the configuration is valid, "0" otherwise
    check_alive -> "1" if the instance is alive, "0" otherwise
    metric      -> the metric value
    anything that fails or is unknown -> ZBX_NOTSUPPORTED

Public API:
    ActionDispatcher: Routes actions to callbacks
    lookup_metric: Extract a value from a JSON payload by dotted path
"""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Generic, TypeVar

from probecache.exceptions import IdentityError
from probecache.identity import check_process_identity

logger = logging.getLogger(__name__)

MSG_NOT_SUPPORTED = "ZBX_NOTSUPPORTED"

CHECK_CONF_FAIL = "0"
CHECK_CONF_SUCCESS = "1"
CHECK_ALIVE_FAIL = "0"
CHECK_ALIVE_SUCCESS = "1"

ContextT = TypeVar("ContextT")


class Action(StrEnum):
    """Actions understood by the dispatcher."""

    DISCOVERY = "discovery"
    CHECK_CONF = "check_conf"
    CHECK_ALIVE = "check_alive"
    METRIC = "metric"


@dataclass
class ActionDispatcher(Generic[ContextT]):
    """Route agent actions to callbacks.

    All four callbacks must be set; a dispatcher missing any of them answers
    ZBX_NOTSUPPORTED to every action.

    Attributes:
        discovery: Returns the JSON-serializable list of discovered entities
        check_conf: Raises if the configuration is invalid
        check_alive: Returns whether the instance is alive
        metric: Returns the requested metric value
        check_identity: Require the process to run as user:group
        user: Expected process user
        group: Expected process group

    Example:
        >>> cache = ProbeCache(settings.cache_root, exporter=fetch_status)
        >>> dispatcher = ActionDispatcher(
        ...     discovery=lambda ctx: [{"{#NAME}": i.name} for i in ctx.instances],
        ...     check_conf=lambda ctx: ctx.validate(),
        ...     check_alive=lambda ctx: cache.get(ctx.instance, ctx).alive,
        ...     metric=lambda ctx: ctx.metric_from(cache.get(ctx.instance, ctx)),
        ... )
        >>> print(dispatcher.dispatch("check_alive", ctx))
    """

    discovery: Callable[[ContextT], Any] | None = None
    check_conf: Callable[[ContextT], None] | None = None
    check_alive: Callable[[ContextT], bool] | None = None
    metric: Callable[[ContextT], str] | None = None
    check_identity: bool = False
    user: str | None = None
    group: str | None = None

    def dispatch(self, action: str, context: ContextT) -> str:
        """Run ``action`` and return the agent answer.

        Never raises: callback failures are logged and answered with the
        action's failure value.
        """
        if (
            self.discovery is None
            or self.check_conf is None
            or self.check_alive is None
            or self.metric is None
        ):
            logger.warning("Action processing error: one of the action callbacks is not set")
            return MSG_NOT_SUPPORTED

        if self.check_identity:
            try:
                check_process_identity(self.user, self.group)
            except IdentityError as e:
                logger.warning(f"Error while checking uid or gid for process: {e}")
                return MSG_NOT_SUPPORTED

        try:
            action = Action(action)
        except ValueError:
            logger.warning(f"Unknown action: {action}")
            return MSG_NOT_SUPPORTED

        if action is Action.DISCOVERY:
            try:
                data = self.discovery(context)
                return json.dumps({"data": data}, separators=(",", ":"))
            except Exception as e:
                logger.warning(f"Discovery processing error: {e}")
                return MSG_NOT_SUPPORTED

        if action is Action.CHECK_CONF:
            try:
                self.check_conf(context)
            except Exception as e:
                logger.warning(f"Check config processing error: {e}")
                return CHECK_CONF_FAIL
            return CHECK_CONF_SUCCESS

        if action is Action.CHECK_ALIVE:
            try:
                alive = self.check_alive(context)
            except Exception as e:
                logger.warning(f"Check alive processing error: {e}")
                return CHECK_ALIVE_FAIL
            return CHECK_ALIVE_SUCCESS if alive else CHECK_ALIVE_FAIL

        try:
            return str(self.metric(context))
        except Exception as e:
            logger.warning(f"Get metric processing error: {e}")
            return MSG_NOT_SUPPORTED


def lookup_metric(payload: bytes, path: str) -> str:
    """Extract a value from a JSON payload by dotted path.

    Path segments select object keys, or list items when the segment is an
    integer. Strings are returned as-is, booleans as ``true``/``false``,
    null as an empty string, objects and lists as compact JSON.

    Example:
        >>> lookup_metric(b'{"conn": {"active": 3}}', "conn.active")
        '3'

    Raises:
        ValueError: If the payload is not JSON
        KeyError: If the path does not exist
    """
    try:
        value: Any = json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Payload is not valid JSON: {e}") from e

    for segment in path.split(".") if path else []:
        if isinstance(value, dict) and segment in value:
            value = value[segment]
        elif isinstance(value, list) and segment.lstrip("-").isdigit():
            index = int(segment)
            if not -len(value) <= index < len(value):
                raise KeyError(f"Can't find specified metric (metric: {path})")
            value = value[index]
        else:
            raise KeyError(f"Can't find specified metric (metric: {path})")

    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


__all__ = ["MSG_NOT_SUPPORTED", "Action", "ActionDispatcher", "lookup_metric"]
