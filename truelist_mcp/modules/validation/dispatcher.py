import asyncio
from typing import Awaitable, Callable, List, Optional, Protocol, Sequence

from truelist_mcp.modules.validation.client import ValidationOutcome
from truelist_mcp.modules.validation.schemas import BatchRequest
from truelist_mcp.utils import DEFAULT_BATCH_DELAY_MS, DEFAULT_BATCH_SIZE, logger


class ValidationBackend(Protocol):
    async def validate_one(self, email: str) -> ValidationOutcome:
        ...


def partition(emails: Sequence[str], batch_size: int) -> List[range]:
    """Index ranges of consecutive groups, in input order"""
    return [
        range(start, min(start + batch_size, len(emails)))
        for start in range(0, len(emails), batch_size)
    ]


class BatchDispatcher:
    """Validates an ordered list of addresses in rate-limited groups.

    Groups of ``batch_size`` addresses are validated concurrently, one group
    at a time, with a fixed ``batch_delay_ms`` pause before every group but
    the first. A failing address is reported in its own slot and never stops
    the batch.
    """

    def __init__(
        self,
        client: ValidationBackend,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay_ms: int = DEFAULT_BATCH_DELAY_MS,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if batch_delay_ms < 0:
            raise ValueError("batch_delay_ms must not be negative")
        self.client = client
        self.batch_size = batch_size
        self.batch_delay_ms = batch_delay_ms
        self._sleep = sleep or asyncio.sleep

    async def _validate_into(self, results: List[Optional[ValidationOutcome]], index: int, email: str):
        try:
            results[index] = await self.client.validate_one(email)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.warning(f"Validation failed for {email} (position {index}): {message}")
            results[index] = ValidationOutcome.failed(email, message)

    async def validate_batch(self, emails: Sequence[str]) -> List[ValidationOutcome]:
        # Raises BatchValidationError before anything is sent
        emails = BatchRequest(emails=emails).emails

        groups = partition(emails, self.batch_size)
        results: List[Optional[ValidationOutcome]] = [None] * len(emails)
        logger.info(f"Validating {len(emails)} emails in {len(groups)} group(s) of up to {self.batch_size}")

        for number, group in enumerate(groups):
            if number > 0:
                await self._sleep(self.batch_delay_ms / 1000)

            await asyncio.gather(
                *[self._validate_into(results, index, emails[index]) for index in group]
            )
            logger.debug(f"Group {number + 1}/{len(groups)} done ({len(group)} emails)")

        failed = sum(1 for outcome in results if outcome.error is not None)
        if failed:
            logger.info(f"Batch finished with {failed}/{len(results)} failed lookups")
        return results
