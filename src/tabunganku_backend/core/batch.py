'''
Runs one async operation over many items, collecting per-item outcomes.
A failing item never stops the rest; nothing already done is undone.
'''
from contextlib import nullcontext
from typing import Any, AsyncContextManager, Awaitable, Callable, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..common.exceptions import TabunganError
from ..common.logger import log


class BatchFailure(BaseModel):
    item: Any
    error: str

    model_config = ConfigDict(arbitrary_types_allowed=True)


class BatchResult(BaseModel):
    succeeded: list[Any] = Field(default_factory=list)
    failed: list[BatchFailure] = Field(default_factory=list)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def fail_count(self) -> int:
        return len(self.failed)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)


async def run_batch(
    items: Iterable[Any],
    operation: Callable[[Any], Awaitable[Any]],
    describe: Optional[Callable[[Any], str]] = None,
    savepoint: Optional[Callable[[], AsyncContextManager]] = None,
) -> BatchResult:
    """
    Applies `operation` to each item in order. Expected failures
    (TabunganError) are recorded with their message; anything else is logged
    with a traceback and recorded too.

    Database-backed callers pass `savepoint=session.begin_nested` so each
    item runs in its own SAVEPOINT: a failed flush rolls back that item only
    and the session stays usable for the next one.
    """
    result = BatchResult()
    for item in items:
        label = describe(item) if describe else repr(item)
        try:
            async with (savepoint() if savepoint else nullcontext()):
                outcome = await operation(item)
        except TabunganError as e:
            log.warning(f"Batch item {label} failed: {e.message}")
            result.failed.append(BatchFailure(item=item, error=e.message))
            continue
        except Exception as e:
            log.error(f"Batch item {label} failed unexpectedly: {e}", exc_info=True)
            result.failed.append(BatchFailure(item=item, error=str(e)))
            continue
        result.succeeded.append(outcome)

    log.info(f"Batch finished: {result.success_count} succeeded, {result.fail_count} failed.")
    return result
