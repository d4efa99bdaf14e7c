"""Tests for webhook delivery and the command-line flow."""

import sys
from types import SimpleNamespace

import pytest
import requests
import onboarding_agent
from onboarding_agent import (
    SOURCE_TAG, MockWebhook, WebhookGateway, build_submission_payload,
    create_sample_intake, default_gateway,
)
from onboarding_record import OnboardingRecord, load_intake


class FakeSession:
    def __init__(self, status=200, error=None):
        self.status = status
        self.error  = error
        self.calls  = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error:
            raise self.error
        return SimpleNamespace(ok=200 <= self.status < 300, status_code=self.status, reason="X")


@pytest.fixture
def payload():
    return build_submission_payload(OnboardingRecord(first_name="Noah"), "narrative", "2026-10-19T00:00:00+00:00")


class TestPayload:
    def test_metadata_fields(self, payload):
        assert payload["aiInsight"] == "narrative"
        assert payload["submittedAt"] == "2026-10-19T00:00:00+00:00"
        assert payload["source"] == SOURCE_TAG
        assert payload["firstName"] == "Noah"


class TestWebhookGateway:
    def test_posts_json(self, payload):
        session = FakeSession()
        gw      = WebhookGateway("https://hooks.example.com/x", timeout=3, session=session)
        assert gw.send(payload) is True
        url, kwargs = session.calls[0]
        assert url == "https://hooks.example.com/x"
        assert kwargs["json"] == payload
        assert kwargs["headers"]["Content-Type"] == "application/json"
        assert kwargs["timeout"] == 3

    @pytest.mark.parametrize("status", [400, 404, 500, 503])
    def test_non_2xx_is_failure(self, payload, status):
        gw = WebhookGateway("https://hooks.example.com/x", session=FakeSession(status=status))
        assert gw.send(payload) is False

    def test_transport_error_is_failure(self, payload):
        session = FakeSession(error=requests.ConnectionError("refused"))
        gw      = WebhookGateway("https://hooks.example.com/x", session=session)
        assert gw.send(payload) is False


class TestMockWebhook:
    def test_stores_copy(self, payload):
        hook = MockWebhook()
        assert hook.send(payload) is True
        payload["firstName"] = "Changed"
        assert hook.received[0]["firstName"] == "Noah"

    def test_fail_mode(self, payload):
        hook = MockWebhook(fail=True)
        assert hook.send(payload) is False
        assert hook.received == []

    def test_default_gateway(self, monkeypatch):
        assert isinstance(default_gateway(mock=True), MockWebhook)
        monkeypatch.setattr(onboarding_agent, "WEBHOOK_URL", "")
        assert isinstance(default_gateway(), MockWebhook)
        monkeypatch.setattr(onboarding_agent, "WEBHOOK_URL", "https://hooks.example.com/x")
        gw = default_gateway()
        assert isinstance(gw, WebhookGateway)
        assert gw.url == "https://hooks.example.com/x"


class TestCli:
    def test_setup_writes_loadable_intake(self, tmp_path):
        path = create_sample_intake(tmp_path / "intake.xlsx")
        rec  = load_intake(path)
        assert rec.full_name == "Olivia Hartley"
        assert rec.has_spouse and rec.has_entities and rec.has_medicare_card
        assert len(rec.entities) == 2
        assert rec.entities[0].type == "trust"

    def test_mock_submit(self, tmp_path, capsys):
        path = create_sample_intake(tmp_path / "intake.xlsx")
        onboarding_agent.submit_client(str(path), mock=True)
        out = capsys.readouterr().out
        assert "Status: submitted" in out
        assert "### Executive Summary" in out
        assert '"source": "Private Portal Onboarding"' in out

    def test_main_mock_review(self, tmp_path, monkeypatch, capsys):
        path = create_sample_intake(tmp_path / "intake.xlsx")
        monkeypatch.setattr(sys, "argv", ["onboarding_agent.py", "--mock", "review", "--intake", str(path)])
        onboarding_agent.main()
        out = capsys.readouterr().out
        assert "Lead Member" in out
        assert "2 Managed Entities" in out

    def test_missing_intake_exits(self, tmp_path):
        with pytest.raises(SystemExit):
            onboarding_agent.review_client(str(tmp_path / "missing.xlsx"), mock=True)

    def test_real_mode_requires_key(self, monkeypatch):
        monkeypatch.setattr(onboarding_agent, "HAS_API_KEY", False)
        monkeypatch.setattr(sys, "argv", ["onboarding_agent.py", "review"])
        with pytest.raises(SystemExit):
            onboarding_agent.main()
