"""Invoke helpers — call sync or async handlers uniformly.

Base handlers can be ``def`` or ``async def``. The chain builder adapts
them once so every link in the chain can be awaited.

Usage::

    from stickler._internal.invoke import invoke

    result = await invoke(handler, request)
"""

import inspect
from typing import Any


async def invoke(handler: Any, *args: Any, **kwargs: Any) -> Any:
    """Call a handler and await the result if it's a coroutine.

    Works with both sync and async callables::

        def hello(request):
            return Response(body=[b"hi"])

        async def hello(request):
            data = await fetch_data()
            return Response(body=[data])
    """
    result = handler(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
