"""Bounded waits on Kubernetes resources.

This module provides the primitive behind every wait performed by h2ok:
waiting until a condition holds on a single named resource, as observed
through a watch, or until a deadline elapses.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from contextlib import aclosing
from typing import Any

from h2ok.errors import WaitTimeout
from h2ok.kubernetes.base import WATCH_STATE_EVENTS, KubernetesResource

logger = logging.getLogger(__name__)


async def wait_for(
    handler: KubernetesResource,
    name: str,
    predicate: Callable[[Any], bool],
    timeout: float,
    namespace: str | None = None,
    fast_path: bool = True,
) -> Any:
    """Wait until ``predicate`` holds for the named resource.

    The current state is checked once first. If the condition does not hold,
    a watch restricted to the resource is opened and the predicate is applied
    to the object carried by every ADDED and MODIFIED event. The watch is
    bounded both by the API server and by a local deadline of ``timeout`` seconds.

    Args:
        handler: Handler of the resource type to wait on.
        name: Name of the resource.
        predicate: Condition to wait for, applied to the resource object.
        timeout: Maximum number of seconds to wait.
        namespace: Namespace of the resource. Defaults to the handler's namespace.
        fast_path: Whether to check the current state before opening the watch.

    Returns:
        The first observed resource object satisfying the predicate.

    Raises:
        WaitTimeout: The watch ended or the deadline elapsed before the condition held.
        PlatformError: Reading or watching the resource failed.
    """
    target = handler.describe(name, namespace or handler.namespace)
    started = time.monotonic()

    if fast_path:
        current = await handler.get(name, namespace)
        if current is not None and predicate(current):
            logger.debug(f"{target} already satisfies the awaited condition")
            return current

    logger.info(f"Waiting up to {timeout} seconds for {target}")
    try:
        async with asyncio.timeout(timeout):
            async with aclosing(handler.watch(name, namespace, timeout)) as events:
                async for event in events:
                    if event.get("type") not in WATCH_STATE_EVENTS:
                        continue
                    if predicate(event["object"]):
                        logger.info(f"{target} ready after {time.monotonic() - started:.1f} seconds")
                        return event["object"]
    except TimeoutError:
        logger.debug(f"Deadline of {timeout} seconds elapsed while watching {target}")

    raise WaitTimeout(target, timeout, time.monotonic() - started)
