import pytest

from turntable.errors import GenerationFailed, GenerationTimeout
from turntable.polling import OperationPoller


@pytest.mark.unit
class TestOperationPoller:

    @pytest.fixture
    def sleeps(self):
        return []

    @pytest.fixture
    def poller(self, sleeps):
        async def fake_sleep(seconds):
            sleeps.append(seconds)

        return OperationPoller(interval=5, max_attempts=3, sleep=fake_sleep)

    @pytest.mark.asyncio
    async def test_returns_first_finished_result(self, poller, sleeps):
        answers = iter([None, None, "video"])

        async def check(handle):
            return next(answers)

        assert await poller.wait("op-1", check) == "video"
        assert sleeps == [5, 5, 5]

    @pytest.mark.asyncio
    async def test_raises_timeout_after_max_attempts(self, poller, sleeps):
        calls = []

        async def check(handle):
            calls.append(handle)
            return None

        with pytest.raises(GenerationTimeout) as exc_info:
            await poller.wait("op-2", check, label="Veo operation")

        assert len(calls) == 3
        assert exc_info.value.detail == {"operation": "op-2", "attempts": 3}
        assert isinstance(exc_info.value, TimeoutError)
        assert not isinstance(exc_info.value, GenerationFailed)

    @pytest.mark.asyncio
    async def test_provider_failure_propagates_immediately(self, poller, sleeps):
        async def check(handle):
            raise GenerationFailed("Veo operation failed", detail={"code": 13})

        with pytest.raises(GenerationFailed):
            await poller.wait("op-3", check)
        assert len(sleeps) == 1

    def test_budget_and_validation(self):
        assert OperationPoller(interval=5, max_attempts=60).budget_seconds == 300
        with pytest.raises(ValueError):
            OperationPoller(max_attempts=0)
