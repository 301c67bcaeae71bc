import time
import asyncio

from bridge.ai.errors import ResponseTimeout

POLL_EVERY = 0.2


async def wait_for_stabilization(
    probe,
    timeout,
    stabilization_time=1.5,
    interval=POLL_EVERY,
    clock=time.monotonic,
    sleep=asyncio.sleep,
):
    """Poll `probe` until its text stops changing for `stabilization_time` seconds.

    The remote pages stream tokens with no "done" event, so a reply counts as
    final once it has been non-empty and unchanged for the quiet window. If the
    overall `timeout` runs out first, the last non-empty text seen is returned
    as a partial answer; with nothing seen at all, ResponseTimeout is raised.
    """
    start = clock()
    last_content = ""
    last_non_empty = ""
    last_change = start

    while clock() - start < timeout:
        content = await probe()

        if content != last_content:
            last_content = content
            last_change = clock()
            if content:
                last_non_empty = content
        elif content and clock() - last_change >= stabilization_time:
            return content

        await sleep(interval)

    if last_non_empty:
        return last_non_empty
    raise ResponseTimeout("Response timeout")
