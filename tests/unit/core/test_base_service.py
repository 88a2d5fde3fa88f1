"""
Unit tests for core.base_service module.

Tests:
- BaseServiceConfig defaults and validation
- run_forever() cycling, shutdown, and consecutive failure limits
- start()/stop() background task ownership
- from_dict() factory and async context manager
"""

import asyncio
from typing import ClassVar

import pytest
from pydantic import Field, ValidationError

from vectorbot.core.base_service import BaseService, BaseServiceConfig


class ConcreteServiceConfig(BaseServiceConfig):
    """Test configuration inheriting from BaseServiceConfig."""

    label: str = Field(default="test")


class ConcreteService(BaseService[ConcreteServiceConfig]):
    """Test implementation."""

    SERVICE_NAME: ClassVar[str] = "test_service"
    CONFIG_CLASS: ClassVar[type[ConcreteServiceConfig]] = ConcreteServiceConfig

    def __init__(self, config: ConcreteServiceConfig | None = None) -> None:
        super().__init__(config)
        self.run_count = 0
        self.should_fail = False
        self.stop_after: int | None = None

    async def run(self) -> None:
        self.run_count += 1
        if self.stop_after is not None and self.run_count >= self.stop_after:
            self.request_shutdown()
        if self.should_fail:
            raise RuntimeError("Simulated failure")


class TestBaseServiceConfig:
    def test_defaults(self) -> None:
        config = BaseServiceConfig()
        assert config.interval == 15.0
        assert config.max_consecutive_failures == 0

    def test_interval_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            BaseServiceConfig(interval=0)

    def test_failures_must_be_non_negative(self) -> None:
        with pytest.raises(ValidationError):
            BaseServiceConfig(max_consecutive_failures=-1)


class TestRunForever:
    async def test_runs_until_shutdown(self) -> None:
        service = ConcreteService(ConcreteServiceConfig(interval=0.01))
        service.stop_after = 3

        await service.run_forever()

        assert service.run_count == 3
        assert not service.is_running

    async def test_stops_after_max_consecutive_failures(self) -> None:
        service = ConcreteService(
            ConcreteServiceConfig(interval=0.01, max_consecutive_failures=2)
        )
        service.should_fail = True

        await service.run_forever()

        assert service.run_count == 2

    async def test_unlimited_failures_keep_running(self) -> None:
        service = ConcreteService(ConcreteServiceConfig(interval=0.01))
        service.should_fail = True
        service.stop_after = 4

        await service.run_forever()

        assert service.run_count == 4

    async def test_wait_returns_true_on_shutdown(self) -> None:
        service = ConcreteService()
        service.request_shutdown()
        assert await service.wait(10) is True

    async def test_wait_times_out(self) -> None:
        service = ConcreteService()
        assert await service.wait(0.01) is False


class TestBackgroundTask:
    async def test_start_is_idempotent(self) -> None:
        service = ConcreteService(ConcreteServiceConfig(interval=0.01))
        task = service.start()
        assert service.start() is task
        await service.stop()
        assert task.done()

    async def test_stop_without_start(self) -> None:
        service = ConcreteService()
        await service.stop()
        assert not service.is_running

    async def test_context_manager(self) -> None:
        service = ConcreteService(ConcreteServiceConfig(interval=0.01))
        async with service:
            await asyncio.sleep(0.03)
        assert service.run_count >= 1
        assert not service.is_running


class TestFactory:
    def test_from_dict(self) -> None:
        service = ConcreteService.from_dict({"interval": 5.0, "label": "x"})
        assert service.config.interval == 5.0
        assert service.config.label == "x"

    def test_default_config(self) -> None:
        assert ConcreteService().config.label == "test"
