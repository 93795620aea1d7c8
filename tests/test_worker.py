"""Tests for the background settlement worker."""

import asyncio
import logging

import pytest

from cts_x402.distribution import DistributionOrchestrator
from cts_x402.session import AccountSession
from cts_x402.types import SettlementRequest
from cts_x402.worker import SettlementWorker

from tests.fakes import SMART_ACCOUNT, TOKEN, FakeCustodyProvider, FakeSmartAccount


def _worker(custody, policy, **kwargs) -> SettlementWorker:
    session = AccountSession(custody, SMART_ACCOUNT)
    orchestrator = DistributionOrchestrator(session, policy, token_address=TOKEN)
    return SettlementWorker(orchestrator, **kwargs)


class _ExplodingOrchestrator:
    async def distribute(self, request):
        raise RuntimeError("unexpected bug")


class TestSettlementWorker:
    def test_submit_does_not_wait_for_distribution(self, policy, cent):
        smart_account = FakeSmartAccount(wait_delay=0.2)
        worker = _worker(FakeCustodyProvider(smart_account=smart_account), policy)

        async def run():
            worker.start()
            worker.submit(SettlementRequest(amount=cent))
            # Nothing has been submitted on-chain when submit() returns
            queued_sent = len(smart_account.sent)
            await worker.join()
            await worker.stop()
            return queued_sent

        assert asyncio.run(run()) == 0
        assert len(smart_account.sent) == 1
        assert worker.processed == 1
        assert worker.failed == 0

    def test_drains_in_order(self, custody, smart_account, policy, cent):
        worker = _worker(custody, policy)

        async def run():
            worker.start()
            for _ in range(3):
                worker.submit(SettlementRequest(amount=cent))
            await worker.join()
            await worker.stop()

        asyncio.run(run())
        assert len(smart_account.sent) == 3
        assert worker.processed == 3

    def test_failures_are_counted_and_worker_keeps_running(self, policy, cent):
        worker = _worker(FakeCustodyProvider(accounts=[]), policy)

        async def run():
            worker.start()
            worker.submit(SettlementRequest(amount=cent))
            worker.submit(SettlementRequest(amount=cent))
            await worker.join()
            running = worker.running
            await worker.stop()
            return running

        assert asyncio.run(run()) is True
        assert worker.failed == 2

    def test_unexpected_errors_do_not_kill_worker(self, cent, caplog):
        worker = SettlementWorker(_ExplodingOrchestrator())

        async def run():
            worker.start()
            worker.submit(SettlementRequest(amount=cent))
            await worker.join()
            running = worker.running
            await worker.stop()
            return running

        with caplog.at_level(logging.ERROR, logger="cts_x402.worker"):
            assert asyncio.run(run()) is True
        assert "Unexpected error in payment distribution" in caplog.text
        assert worker.failed == 1

    def test_stop_drains_pending(self, custody, smart_account, policy, cent):
        worker = _worker(custody, policy)

        async def run():
            worker.start()
            worker.submit(SettlementRequest(amount=cent))
            await worker.stop()

        asyncio.run(run())
        assert len(smart_account.sent) == 1
        assert not worker.running

    def test_stop_gives_up_after_grace_period(self, policy, cent, caplog):
        smart_account = FakeSmartAccount(wait_delay=5)
        worker = _worker(
            FakeCustodyProvider(smart_account=smart_account),
            policy,
            drain_timeout_seconds=0.05,
        )

        async def run():
            worker.start()
            worker.submit(SettlementRequest(amount=cent))
            worker.submit(SettlementRequest(amount=cent))
            await worker.stop()

        with caplog.at_level(logging.WARNING, logger="cts_x402.worker"):
            asyncio.run(run())
        assert "still pending" in caplog.text
        assert not worker.running

    def test_start_is_idempotent(self, custody, policy):
        worker = _worker(custody, policy)

        async def run():
            worker.start()
            task = worker._task
            worker.start()
            same = worker._task is task
            await worker.stop()
            return same

        assert asyncio.run(run()) is True

    def test_full_queue_drops_and_counts(self, custody, policy, cent, caplog):
        worker = _worker(custody, policy, max_pending=1)

        with caplog.at_level(logging.ERROR, logger="cts_x402.worker"):
            assert worker.submit(SettlementRequest(amount=cent)) is True
            assert worker.submit(SettlementRequest(amount=cent, payment_transaction="0xpay")) is False

        assert worker.pending == 1
        assert worker.dropped == 1
        assert "Settlement queue full" in caplog.text
        assert "0xpay" in caplog.text

    def test_deep_queue_is_logged(self, custody, policy, cent, caplog):
        worker = _worker(custody, policy, max_pending=4)

        with caplog.at_level(logging.WARNING, logger="cts_x402.worker"):
            worker.submit(SettlementRequest(amount=cent))
            assert "queue is deep" not in caplog.text
            worker.submit(SettlementRequest(amount=cent))

        assert "Settlement queue is deep: 2 of 4 pending" in caplog.text
        assert worker.dropped == 0

    def test_dropped_settlements_are_not_distributed(self, custody, smart_account, policy, cent):
        worker = _worker(custody, policy, max_pending=1)
        worker.submit(SettlementRequest(amount=cent))
        worker.submit(SettlementRequest(amount=cent))

        async def run():
            worker.start()
            await worker.join()
            await worker.stop()

        asyncio.run(run())
        assert len(smart_account.sent) == 1
        assert worker.processed == 1

    @pytest.mark.parametrize("max_pending", [0, -1])
    def test_max_pending_must_be_positive(self, custody, policy, max_pending):
        with pytest.raises(ValueError, match="max_pending must be positive"):
            _worker(custody, policy, max_pending=max_pending)
