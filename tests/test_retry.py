import pytest

from mirakl_sync.services.mirakl_errors import (
    MiraklBadRequestError,
    MiraklRateLimitError,
    MiraklServerError,
    classify_error,
)
from mirakl_sync.services.retry import backoff_delay, parse_retry_after, retry_with_backoff


class FlakyOperation:
    """Raises the queued errors in order, then returns "ok" """

    def __init__(self, *errors):
        self.errors = list(errors)
        self.attempts = 0

    async def __call__(self):
        self.attempts += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


def rate_limited(retry_after=None):
    return classify_error("order fetch", status_code=429, retry_after=retry_after)


def server_error(status_code=503):
    return classify_error("order fetch", status_code=status_code)


def test_backoff_delay_doubles():
    assert backoff_delay(1, 1.0) == 2
    assert backoff_delay(2, 1.0) == 4
    assert backoff_delay(3, 1.0) == 8
    assert backoff_delay(2, 0.5) == 2


@pytest.mark.parametrize("value,expected", [
    ("5", 5),
    (" 10 ", 10),
    ("0", 0),
    (None, None),
    ("soon", None),
    ("-3", None),
])
def test_parse_retry_after(value, expected):
    assert parse_retry_after(value) == expected


@pytest.mark.asyncio
async def test_success_needs_no_sleep(fake_sleep):
    operation = FlakyOperation()
    assert await retry_with_backoff(operation, sleep=fake_sleep) == "ok"
    assert operation.attempts == 1
    assert fake_sleep.calls == []


@pytest.mark.asyncio
async def test_rate_limit_retries_with_exponential_backoff(fake_sleep):
    operation = FlakyOperation(rate_limited(), rate_limited())

    assert await retry_with_backoff(operation, max_attempts=3, base_delay=1.0, sleep=fake_sleep) == "ok"
    assert operation.attempts == 3
    assert fake_sleep.calls == [2, 4]


@pytest.mark.asyncio
async def test_retry_after_header_wins_over_backoff(fake_sleep):
    operation = FlakyOperation(rate_limited("7"))

    await retry_with_backoff(operation, sleep=fake_sleep)
    assert fake_sleep.calls == [7]


@pytest.mark.asyncio
async def test_unparseable_retry_after_falls_back_to_backoff(fake_sleep):
    operation = FlakyOperation(rate_limited("Wed, 21 Oct 2026 07:28:00 GMT"))

    await retry_with_backoff(operation, sleep=fake_sleep)
    assert fake_sleep.calls == [2]


@pytest.mark.asyncio
async def test_server_errors_are_retried(fake_sleep):
    operation = FlakyOperation(server_error(500), server_error(502))

    assert await retry_with_backoff(operation, sleep=fake_sleep) == "ok"
    assert fake_sleep.calls == [2, 4]


@pytest.mark.asyncio
async def test_exhaustion_reraises_last_error(fake_sleep):
    last = rate_limited()
    operation = FlakyOperation(rate_limited(), rate_limited(), last)

    with pytest.raises(MiraklRateLimitError) as exc_info:
        await retry_with_backoff(operation, max_attempts=3, sleep=fake_sleep)

    assert exc_info.value is last
    assert operation.attempts == 3
    assert fake_sleep.calls == [2, 4]


@pytest.mark.asyncio
async def test_server_error_exhaustion(fake_sleep):
    operation = FlakyOperation(server_error(), server_error())

    with pytest.raises(MiraklServerError):
        await retry_with_backoff(operation, max_attempts=2, sleep=fake_sleep)
    assert fake_sleep.calls == [2]


@pytest.mark.asyncio
async def test_non_retryable_error_short_circuits(fake_sleep):
    operation = FlakyOperation(classify_error("offer sync", status_code=400, remote_message="bad"))

    with pytest.raises(MiraklBadRequestError):
        await retry_with_backoff(operation, sleep=fake_sleep)

    assert operation.attempts == 1
    assert fake_sleep.calls == []


@pytest.mark.asyncio
async def test_unrelated_exceptions_propagate(fake_sleep):
    operation = FlakyOperation(KeyError("boom"))

    with pytest.raises(KeyError):
        await retry_with_backoff(operation, sleep=fake_sleep)
    assert operation.attempts == 1


@pytest.mark.asyncio
async def test_max_attempts_must_be_positive(fake_sleep):
    with pytest.raises(ValueError):
        await retry_with_backoff(FlakyOperation(), max_attempts=0, sleep=fake_sleep)
