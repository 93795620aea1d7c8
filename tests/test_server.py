"""Tests for the Starlette resource server and payment wrapper."""

import logging
from decimal import Decimal

import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from cts_x402.distribution import DistributionOrchestrator
from cts_x402.http import create_app, create_payment_wrapper, decode_payment_required
from cts_x402.http.headers import decode_header
from cts_x402.reports import Report
from cts_x402.session import AccountSession
from cts_x402.utils import encode_transfer_call
from cts_x402.worker import SettlementWorker

from tests.fakes import (
    CURATOR,
    HOST,
    PAYER,
    PAYMENT_TX,
    PLATFORM,
    RECEIVER,
    TOKEN,
    FakeCustodyProvider,
    FakeReports,
    FakeResourceServer,
    FakeSmartAccount,
    payment_header,
    report_requirements,
)

REPORTS = [
    Report(id="r1", status="done", curator_user_id="u1", space_title="Bitcoin Weekly"),
    Report(id="r2", status="done", curator_user_id="u2", space_title="Ethereum Roadmap"),
]

PAID = {"PAYMENT-SIGNATURE": payment_header()}


class _Harness:
    def __init__(self, config, custody=None, resource_server=None, reports=None, warm_session=False):
        self.custody = custody or FakeCustodyProvider()
        self.resource_server = resource_server or FakeResourceServer()
        self.reports = reports or FakeReports(REPORTS)
        self.session = AccountSession(self.custody, config.smart_account_address)
        self.worker = SettlementWorker(DistributionOrchestrator.from_config(config, self.session))
        self.app = create_app(
            config,
            worker=self.worker,
            resource_server=self.resource_server,
            accepts=[report_requirements()],
            reports=self.reports,
            session=self.session,
            warm_session=warm_session,
        )


class TestFreeRoutes:
    def test_browse_reports(self, config):
        h = _Harness(config)
        with TestClient(h.app) as client:
            response = client.get("/browse-reports")
        assert response.status_code == 200
        assert response.json() == [
            {"id": "r1", "title": "Bitcoin Weekly"},
            {"id": "r2", "title": "Ethereum Roadmap"},
        ]

    def test_browse_upstream_failure(self, config):
        h = _Harness(config, reports=FakeReports(None))
        with TestClient(h.app) as client:
            response = client.get("/browse-reports")
        assert response.status_code == 500

    def test_search_reports_is_case_insensitive(self, config):
        h = _Harness(config)
        with TestClient(h.app) as client:
            response = client.get("/search-reports", params={"query": "bitcoin"})
        assert response.json() == [{"id": "r1", "title": "Bitcoin Weekly"}]

    def test_search_requires_query(self, config):
        h = _Harness(config)
        with TestClient(h.app) as client:
            response = client.get("/search-reports")
        assert response.status_code == 400
        assert response.json() == {"error": "Query parameter is required."}

    def test_search_no_matches(self, config):
        h = _Harness(config)
        with TestClient(h.app) as client:
            response = client.get("/search-reports", params={"query": "solana"})
        assert response.json() == {"message": 'No reports found matching "solana".'}

    def test_health(self, config):
        h = _Harness(config)
        with TestClient(h.app) as client:
            body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["distributionEnabled"] is True
        assert body["receivingWallet"] == RECEIVER
        assert body["usdcContract"] == TOKEN
        assert body["pendingDistributions"] == 0
        assert body["droppedDistributions"] == 0

    def test_distribution_config(self, config):
        h = _Harness(config)
        with TestClient(h.app) as client:
            body = client.get("/distribution-config").json()
        assert body["hostAddress"] == HOST
        assert body["curatorAddress"] == CURATOR
        assert body["platformAddress"] == PLATFORM
        assert body["splits"] == {"host": "50%", "curator": "30%", "platform": "20%"}
        assert body["chainId"] == "eip155:84532"


class TestLifespan:
    def test_shutdown_closes_clients(self, config):
        h = _Harness(config)
        with TestClient(h.app) as client:
            client.get("/health")
            assert not h.reports.closed
            assert not h.custody.closed

        assert h.reports.closed
        assert h.custody.closed
        assert not h.worker.running

    def test_session_warmup_failure_is_not_fatal(self, config):
        h = _Harness(config, custody=FakeCustodyProvider(accounts=[]), warm_session=True)
        with TestClient(h.app) as client:
            assert client.get("/health").status_code == 200

    def test_session_warmup_initializes_once(self, config):
        h = _Harness(config, warm_session=True)
        with TestClient(h.app) as client:
            client.get("/get-report-resource/r1", headers=PAID)
        assert h.custody.list_calls == 1


class TestPaidReport:
    def test_payment_required_without_header(self, config):
        h = _Harness(config)
        with TestClient(h.app) as client:
            response = client.get("/get-report-resource/r1")

        assert response.status_code == 402
        body = response.json()
        assert body["x402Version"] == 2
        assert body["error"] == "Payment Required"
        assert body["resource"]["url"] == "http://testserver/get-report-resource/r1"
        accepts = body["accepts"][0]
        assert accepts["scheme"] == "exact"
        assert accepts["network"] == "eip155:84532"
        assert accepts["amount"] == "10000"
        assert accepts["payTo"] == RECEIVER
        assert accepts["asset"] == TOKEN
        assert h.reports.fetched == []

        payment_required = decode_payment_required(response.headers["PAYMENT-REQUIRED"])
        assert payment_required.accepts[0].amount == "10000"

    def test_malformed_payment_header(self, config):
        h = _Harness(config)
        with TestClient(h.app) as client:
            response = client.get("/get-report-resource/r1", headers={"PAYMENT-SIGNATURE": "%%%"})
        assert response.status_code == 402
        assert "Invalid payment payload" in response.json()["error"]
        assert h.resource_server.verify_calls == 0

    def test_verification_failure(self, config):
        h = _Harness(config, resource_server=FakeResourceServer(valid=False))
        with TestClient(h.app) as client:
            response = client.get("/get-report-resource/r1", headers=PAID)
        assert response.status_code == 402
        body = response.json()
        assert "invalid_signature" in body["error"]
        assert body["payer"] == PAYER
        assert "payer" not in decode_header(response.headers["PAYMENT-REQUIRED"])
        assert h.reports.fetched == []
        assert h.resource_server.settle_calls == 0

    def test_verification_error(self, config):
        h = _Harness(config, resource_server=FakeResourceServer(verify_error=ConnectionError("down")))
        with TestClient(h.app) as client:
            response = client.get("/get-report-resource/r1", headers=PAID)
        assert response.status_code == 402
        assert "Payment verification error" in response.json()["error"]
        assert h.reports.fetched == []

    def test_paid_request_serves_content_and_distributes(self, config):
        h = _Harness(config)
        with TestClient(h.app) as client:
            response = client.get("/get-report-resource/r1", headers=PAID)

            assert response.status_code == 200
            assert response.text == "report body"
            settled = decode_header(response.headers["PAYMENT-RESPONSE"])
            assert settled["success"] is True
            assert settled["transaction"] == PAYMENT_TX
            assert settled["payer"] == PAYER

        # Leaving the client drains the worker
        sent = h.custody.smart_account.sent
        assert len(sent) == 1
        calls, network = sent[0]
        assert network == "base-sepolia"
        assert [c["data"] for c in calls] == [
            encode_transfer_call(HOST, 5000),
            encode_transfer_call(CURATOR, 3000),
            encode_transfer_call(PLATFORM, 2000),
        ]
        assert h.worker.processed == 1

    def test_legacy_payment_header(self, config):
        h = _Harness(config)
        with TestClient(h.app) as client:
            response = client.get("/get-report-resource/r1", headers={"X-PAYMENT": payment_header()})
        assert response.status_code == 200
        assert h.resource_server.settle_calls == 1

    def test_json_content(self, config):
        h = _Harness(config, reports=FakeReports(REPORTS, content={"id": "r1", "body": "..."}))
        with TestClient(h.app) as client:
            response = client.get("/get-report-resource/r1", headers=PAID)
        assert response.json() == {"id": "r1", "body": "..."}

    def test_content_failure_is_not_settled(self, config):
        h = _Harness(config, reports=FakeReports(REPORTS, content=None))
        with TestClient(h.app) as client:
            response = client.get("/get-report-resource/r1", headers=PAID)

        assert response.status_code == 500
        assert h.resource_server.settle_calls == 0
        assert h.custody.smart_account.sent == []

    def test_settlement_failure_is_payment_required(self, config):
        h = _Harness(config, resource_server=FakeResourceServer(settled=False))
        with TestClient(h.app) as client:
            response = client.get("/get-report-resource/r1", headers=PAID)

        assert response.status_code == 402
        assert "insufficient_funds" in response.json()["error"]
        assert h.custody.smart_account.sent == []

    def test_distribution_failure_does_not_affect_response(self, config, caplog):
        """No signing identity: content is still served, the failure is only logged."""
        h = _Harness(config, custody=FakeCustodyProvider(accounts=[]))
        with caplog.at_level(logging.ERROR, logger="cts_x402"):
            with TestClient(h.app) as client:
                response = client.get("/get-report-resource/r1", headers=PAID)
                assert response.status_code == 200
                assert response.text == "report body"

        assert h.worker.failed == 1
        assert "NoSigningIdentity" in caplog.text

    def test_slow_distribution_does_not_delay_response(self, config):
        smart_account = FakeSmartAccount(wait_delay=0.5)
        h = _Harness(config, custody=FakeCustodyProvider(smart_account=smart_account))
        with TestClient(h.app) as client:
            response = client.get("/get-report-resource/r1", headers=PAID)
            assert response.status_code == 200
            assert h.worker.processed == 0

        assert h.worker.processed == 1


class TestPaymentWrapper:
    @staticmethod
    def _app(on_settled, resource_server=None) -> Starlette:
        paid = create_payment_wrapper(
            resource_server or FakeResourceServer(),
            accepts=[report_requirements("250000")],
            decimals=6,
            on_settled=on_settled,
        )

        @paid
        async def resource(request: Request) -> PlainTextResponse:
            return PlainTextResponse("ok")

        return Starlette(routes=[Route("/r", resource)])

    def test_settlement_request_carries_paid_amount(self):
        settled = []
        with TestClient(self._app(settled.append)) as client:
            response = client.get("/r", headers=PAID)

        assert response.status_code == 200
        (request,) = settled
        assert request.amount == Decimal("0.25")
        assert request.payer == PAYER
        assert request.payment_transaction == PAYMENT_TX
        assert request.resource == "http://testserver/r"

    def test_failing_callback_does_not_affect_response(self, caplog):
        def on_settled(request):
            raise RuntimeError("queue gone")

        with caplog.at_level(logging.ERROR, logger="cts_x402.http.payment"):
            with TestClient(self._app(on_settled)) as client:
                response = client.get("/r", headers=PAID)

        assert response.status_code == 200
        assert "Failed to queue payment distribution" in caplog.text

    def test_requires_requirements(self):
        with pytest.raises(ValueError, match="at least one payment requirement"):
            create_payment_wrapper(FakeResourceServer(), accepts=[], decimals=6, on_settled=print)
