"""Tests for the Claude narrative: prompt content, fallbacks, offline mode."""

from types import SimpleNamespace

import pytest
from onboarding_agent import (
    EMPTY_SUMMARY, FALLBACK_SUMMARY, build_summary_prompt, generate_client_summary,
)
from onboarding_record import OnboardingRecord


class FakeMessages:
    def __init__(self, text=None, error=None):
        self.text   = text
        self.error  = error
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        blocks = [SimpleNamespace(type="text", text=self.text)] if self.text is not None else []
        return SimpleNamespace(content=blocks)


def fake_client(**kwargs):
    return SimpleNamespace(messages=FakeMessages(**kwargs))


@pytest.fixture
def plain_record():
    rec = OnboardingRecord()
    rec.set_field("firstName", "Noah")
    rec.set_field("lastName", "Chen")
    rec.set_field("annualSalary", 95000)
    rec.set_field("superBalance", 50000)
    return rec


@pytest.fixture
def complex_record():
    rec = OnboardingRecord(first_name="Olivia", last_name="Hartley")
    rec.has_spouse   = True
    rec.spouse_name  = "James Hartley"
    rec.has_entities = True
    trust = rec.add_entity()
    rec.update_entity(trust.id, "type", "trust")
    rec.update_entity(trust.id, "name", "Hartley Family Trust")
    rec.update_entity(trust.id, "abn", "51 824 753 556")
    smsf = rec.add_entity()
    rec.update_entity(smsf.id, "type", "smsf")
    rec.update_entity(smsf.id, "name", "Hartley Super Fund")
    rec.total_assets        = 1850000.0
    rec.total_debts         = 720000.0
    rec.has_rental_property = True
    rec.primary_goal        = "Retire at 55"
    return rec


class TestPrompt:
    def test_individual_client_profile(self, plain_record):
        prompt = build_summary_prompt(plain_record)
        assert "- Name: Noah Chen" in prompt
        assert "- Spouse: No" in prompt
        assert "- Entities: None" in prompt
        assert "- Annual Income: $95000" in prompt
        assert "- Super Balance: $50000" in prompt
        assert "Interest: false, Dividends: false, Rental: false" in prompt

    def test_spouse_and_entities_listed(self, complex_record):
        prompt = build_summary_prompt(complex_record)
        assert "- Spouse: Yes (James Hartley). Doing return: false" in prompt
        assert "TRUST: Hartley Family Trust (ABN: 51 824 753 556), SMSF: Hartley Super Fund (ABN: )" in prompt
        assert "- Total Assets: $1850000" in prompt
        assert "Rental: true" in prompt
        assert "- Primary Goal: Retire at 55" in prompt

    def test_four_sections_requested(self, plain_record):
        prompt = build_summary_prompt(plain_record)
        for heading in ("Executive Summary", "Strategic Opportunities",
                        "Compliance Requirements", "Next Steps"):
            assert heading in prompt

    def test_inert_fields_never_reach_prompt(self, plain_record):
        plain_record.spouse_name = "Former Partner"
        e = plain_record.add_entity()
        plain_record.update_entity(e.id, "name", "Dormant Pty Ltd")
        prompt = build_summary_prompt(plain_record)
        assert "Former Partner" not in prompt
        assert "Dormant Pty Ltd" not in prompt
        assert "- Spouse: No" in prompt
        assert "- Entities: None" in prompt


class TestGenerate:
    def test_returns_provider_text(self, plain_record):
        client = fake_client(text="  ### Executive Summary\nSolid base.  ")
        assert generate_client_summary(plain_record, client=client) == "### Executive Summary\nSolid base."
        sent = client.messages.kwargs["messages"][0]["content"]
        assert "- Spouse: No" in sent

    def test_empty_response(self, plain_record):
        assert generate_client_summary(plain_record, client=fake_client(text="")) == EMPTY_SUMMARY
        assert generate_client_summary(plain_record, client=fake_client()) == EMPTY_SUMMARY

    def test_provider_error_falls_back(self, plain_record):
        client = fake_client(error=RuntimeError("overloaded"))
        assert generate_client_summary(plain_record, client=client) == FALLBACK_SUMMARY


class TestMockNarrative:
    def test_has_four_sections(self, complex_record):
        text = generate_client_summary(complex_record, mock=True)
        for heading in ("### Executive Summary", "### Strategic Opportunities",
                        "### Compliance Requirements", "### Next Steps"):
            assert heading in text

    def test_reflects_record(self, complex_record):
        text = generate_client_summary(complex_record, mock=True)
        assert "Olivia Hartley" in text
        assert "James Hartley" in text
        assert "Hartley Family Trust" in text
        assert "trust distribution" in text
        assert "SMSF investment strategy" in text
        assert "Retire at 55" in text

    def test_individual_without_entities(self, plain_record):
        text = generate_client_summary(plain_record, mock=True)
        assert "single-member household" in text
        assert "no entity lodgements" in text
        assert "$95,000" in text

    def test_deterministic(self, complex_record):
        assert generate_client_summary(complex_record, mock=True) == \
            generate_client_summary(complex_record, mock=True)
