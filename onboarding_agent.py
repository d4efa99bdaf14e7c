#!/usr/bin/env python3
"""
Client Onboarding Wizard — powered by Claude

Walks a new client through identity, tax profile, entities, income, wealth
goals and review; asks Claude for an advisor narrative once the review step
is reached, then posts the completed record to the practice's webhook.

Commands:
    setup                          Create a sample intake workbook
    review [--intake PATH]         Walk the wizard to review and print the narrative
    submit [--intake PATH]         Review, then transmit the record to the webhook

Quick start:
    pip install -e .
    export ANTHROPIC_API_KEY=sk-ant-...
    export ONBOARDING_WEBHOOK_URL=https://hooks.example.com/onboarding
    python onboarding_agent.py setup
    python onboarding_agent.py review
    python onboarding_agent.py submit

Mock mode (no API key, no webhook required):
    python onboarding_agent.py --mock review
    python onboarding_agent.py --mock submit
"""

import os
import sys
import json
import argparse
import functools
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path

import anthropic
import requests

from onboarding_record import (
    ENTITY_TYPES, OnboardingRecord, _fmt_money, load_intake, write_intake,
)

# ─────────────────────────────────────────────────────────────────────────────
# Config
# ─────────────────────────────────────────────────────────────────────────────

DATA_DIR        = Path("data")
INTAKE_PATH     = DATA_DIR / "client_intake.xlsx"
MODEL           = os.getenv("ONBOARDING_MODEL", "claude-sonnet-4-5-20250929")
HAS_API_KEY     = bool(os.getenv("ANTHROPIC_API_KEY"))
WEBHOOK_URL     = os.getenv("ONBOARDING_WEBHOOK_URL", "")
WEBHOOK_TIMEOUT = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "15"))

SOURCE_TAG = "Private Portal Onboarding"

FALLBACK_SUMMARY = "The AI assistant is currently unavailable, but your data is safe."
EMPTY_SUMMARY    = "Could not generate summary at this time."
SUBMIT_ERROR     = (
    "We encountered an issue synchronising your data with the server. "
    "Please try again or contact support."
)

STEPS = [
    {"key": "identity", "label": "Identity",    "description": "Personal and family details"},
    {"key": "tax",      "label": "Tax Profile", "description": "Australian tax identity"},
    {"key": "entities", "label": "Entities",    "description": "Business & investment structures"},
    {"key": "income",   "label": "Financials",  "description": "Income and investments"},
    {"key": "wealth",   "label": "Strategy",    "description": "Wealth and planning goals"},
    {"key": "review",   "label": "Review",      "description": "Confirmation and AI insights"},
]
REVIEW_INDEX = len(STEPS) - 1

# Combined wizard status, as shown to the user
IDLE               = "idle"
GENERATING_SUMMARY = "generating-summary"
READY              = "ready"
SUBMITTING         = "submitting"
SUBMITTED          = "submitted"
SUBMISSION_FAILED  = "submission-failed"


# ─────────────────────────────────────────────────────────────────────────────
# Sample Intake Generator
# ─────────────────────────────────────────────────────────────────────────────

def create_sample_intake(path=INTAKE_PATH) -> Path:
    """Write a sample intake workbook the CLI and UI can load."""
    intake_rows = [
        ("First Name",          "Olivia"),
        ("Last Name",           "Hartley"),
        ("Date of Birth",       "1979-06-02"),
        ("Email",               "o.hartley@email.com.au"),
        ("Phone",               "0412 555 019"),
        ("Address",             "14 Wattle St, Paddington NSW 2021"),
        ("Has Spouse",          "Yes"),
        ("Spouse Name",         "James Hartley"),
        ("Spouse Doing Return", "Yes"),
        ("TFN",                 "123456782"),
        ("Residency Status",    "Resident for Tax Purposes"),
        ("Has Medicare Card",   "Yes"),
        ("Medicare Number",     "2123 45670 1"),
        ("Annual Salary",       "240000"),
        ("Interest Income",     "Yes"),
        ("Dividends",           "Yes"),
        ("Rental Property",     "Yes"),
        ("Side Business",       "No"),
        ("Super Balance",       "615000"),
        ("Total Assets",        "1850000"),
        ("Total Debts",         "720000"),
        ("Primary Goal",        "Consolidate the family trust and plan for early retirement at 55."),
    ]
    entity_rows = [
        {"Type": "trust",   "Name": "Hartley Family Trust",  "ABN": "51 824 753 556", "Activity": "Investment holding"},
        {"Type": "company", "Name": "Hartley Advisory Pty Ltd", "ABN": "33 051 775 556", "Activity": "Consulting"},
    ]
    out = write_intake(path, intake_rows, entity_rows)
    print("Sample files created:")
    print(f"  {out}  — new client intake form (2 sheets)")
    return out


# ─────────────────────────────────────────────────────────────────────────────
# Summary Generator
# ─────────────────────────────────────────────────────────────────────────────

SUMMARY_PROMPT = """\
You are a high-end Australian financial advisor and tax accountant's assistant.
Based on the following client data, provide a professional summary:

Client Profile:
- Name: {name}
- Spouse: {spouse}
- Entities: {entities}
- Annual Income: ${salary}
- Super Balance: ${super_balance}
- Total Assets: ${assets}
- Investments: Interest: {interest}, Dividends: {dividends}, Rental: {rental}
- Primary Goal: {goal}

Instructions:
1. Provide an "Executive Summary" focusing on the complexity of their structure.
2. Identify "Strategic Opportunities" (e.g., income splitting if spouse is involved, trust distribution benefits, or SMSF strategies).
3. List "Compliance Requirements" for the identified entities.
4. Suggest "Next Steps" for a discovery meeting.

Return the response in structured Markdown format. Be sophisticated, neutral, and high-value. Do not mention any brand names."""


def _num(val: float) -> str:
    return str(int(val)) if float(val).is_integer() else str(val)


def _js_bool(val: bool) -> str:
    return "true" if val else "false"


def describe_spouse(record: OnboardingRecord) -> str:
    if not record.has_spouse:
        return "No"
    return f"Yes ({record.spouse_name}). Doing return: {_js_bool(record.spouse_doing_return)}"


def describe_entities(record: OnboardingRecord) -> str:
    if not record.has_entities:
        return "None"
    return ", ".join(
        f"{e.type.upper()}: {e.name} (ABN: {e.registration_number})"
        for e in record.entities
    )


def build_summary_prompt(record: OnboardingRecord) -> str:
    """Render the client profile block Claude summarises (inert fields omitted)."""
    return SUMMARY_PROMPT.format(
        name          = f"{record.first_name} {record.last_name}",
        spouse        = describe_spouse(record),
        entities      = describe_entities(record),
        salary        = _num(record.annual_salary),
        super_balance = _num(record.super_balance),
        assets        = _num(record.total_assets),
        interest      = _js_bool(record.has_interest_income),
        dividends     = _js_bool(record.has_dividends),
        rental        = _js_bool(record.has_rental_property),
        goal          = record.primary_goal,
    )


def _mock_summary(record: OnboardingRecord) -> str:
    """Deterministic narrative with the same four sections, no API call."""
    name     = record.full_name or "The client"
    entities = record.active_entities()
    sources  = record.income_sources()
    lines    = ["### Executive Summary", ""]

    structure = "an individual structure"
    if entities:
        kinds     = sorted({ENTITY_TYPES.get(e.type, e.type) for e in entities})
        structure = f"{len(entities)} associated structure{'s' if len(entities) != 1 else ''} ({', '.join(kinds)})"
    household = f"a joint household with {record.spouse_name or 'their spouse'}" if record.has_spouse else "a single-member household"
    lines.append(
        f"{name} presents {household} and {structure}. Primary income is "
        f"{_fmt_money(record.annual_salary)} with superannuation of {_fmt_money(record.super_balance)}, "
        f"investment assets of {_fmt_money(record.total_assets)} and liabilities of "
        f"{_fmt_money(record.total_debts)} (net position {_fmt_money(record.net_position())})."
    )
    if sources:
        lines.append(f"Additional income streams: {', '.join(sources)}.")

    lines += ["", "### Strategic Opportunities", ""]
    opps = []
    if record.has_spouse:
        opps.append("- Review income splitting and spouse super contribution strategies.")
    if any(e.type == "trust" for e in entities):
        opps.append("- Model trust distribution outcomes across beneficiaries.")
    if any(e.type == "smsf" for e in entities):
        opps.append("- Assess SMSF investment strategy and contribution caps.")
    if record.has_rental_property:
        opps.append("- Confirm negative gearing position and depreciation schedule.")
    if record.total_debts > 0:
        opps.append("- Prioritise non-deductible debt reduction.")
    if not opps:
        opps.append("- Maximise concessional super contributions within the cap.")
    lines += opps

    lines += ["", "### Compliance Requirements", ""]
    if entities:
        for e in entities:
            label = ENTITY_TYPES.get(e.type, e.type)
            lines.append(f"- {label} {e.name or '(unnamed)'}: annual return and ABN/TFN details to confirm.")
    else:
        lines.append("- Individual tax return only; no entity lodgements identified.")
    if record.residency_status != "resident":
        lines.append("- Confirm residency position and withholding obligations.")

    lines += ["", "### Next Steps", ""]
    lines.append("- Schedule a discovery meeting to verify the figures above.")
    if record.primary_goal:
        lines.append(f"- Scope advice around the stated goal: {record.primary_goal}")
    lines.append("- Collect prior-year returns and entity financial statements.")
    return "\n".join(lines)


def generate_client_summary(record: OnboardingRecord, client=None, mock: bool = None) -> str:
    """Ask Claude for the advisor narrative. Never raises."""
    if mock is None:
        mock = not HAS_API_KEY and client is None
    if mock:
        print("  → generate_summary(mock)", flush=True)
        return _mock_summary(record)

    print(f"  → generate_summary({MODEL!r})", flush=True)
    try:
        client = client or anthropic.Anthropic()
        resp   = client.messages.create(
            model=MODEL,
            max_tokens=2048,
            messages=[{"role": "user", "content": build_summary_prompt(record)}],
        )
        text = "".join(b.text for b in resp.content if getattr(b, "type", "") == "text")
        return text.strip() or EMPTY_SUMMARY
    except Exception as exc:
        print(f"  ✗ summary generation failed: {exc}", flush=True)
        return FALLBACK_SUMMARY


# ─────────────────────────────────────────────────────────────────────────────
# Submission Gateway
# ─────────────────────────────────────────────────────────────────────────────

def _iso_timestamp() -> str:
    """UTC time as 2026-10-19T06:46:00.123Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_submission_payload(record: OnboardingRecord, narrative: str, submitted_at: str) -> dict:
    return {
        **record.to_payload(),
        "aiInsight":   narrative,
        "submittedAt": submitted_at,
        "source":      SOURCE_TAG,
    }


class WebhookGateway:
    """POSTs the onboarding payload as JSON; reports success as a bool."""

    def __init__(self, url: str, timeout: float = WEBHOOK_TIMEOUT, session: requests.Session = None):
        self.url     = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, payload: dict) -> bool:
        print(f"  → webhook POST {self.url}", flush=True)
        try:
            resp = self.session.post(
                self.url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            print(f"  ✗ webhook error: {exc}", flush=True)
            return False
        if not resp.ok:
            print(f"  ✗ webhook rejected: {resp.status_code} {resp.reason}", flush=True)
            return False
        return True


class MockWebhook:
    """In-memory stand-in for the webhook. Set `fail=True` to simulate an outage."""

    def __init__(self, fail: bool = False):
        self.fail     = fail
        self.received = []

    def send(self, payload: dict) -> bool:
        print(f"  → webhook POST (mock) {payload.get('firstName', '')} {payload.get('lastName', '')}", flush=True)
        if self.fail:
            return False
        self.received.append(json.loads(json.dumps(payload)))
        return True

    def print_records(self) -> None:
        if not self.received:
            return
        print("\n── Mock webhook — received payloads ─────────────────────────────")
        for rec in self.received:
            print(json.dumps(rec, indent=2))


def default_gateway(mock: bool = False):
    if mock or not WEBHOOK_URL:
        return MockWebhook()
    return WebhookGateway(WEBHOOK_URL)


# ─────────────────────────────────────────────────────────────────────────────
# Wizard Controller
# ─────────────────────────────────────────────────────────────────────────────

class WizardController:
    """Owns the record, the current step, and the summary / submission flow.

    Summary generation runs on a single background worker so navigation stays
    responsive; submission blocks the caller until the gateway settles.  Both
    are single-flight.
    """

    def __init__(self, summarizer=None, gateway=None, executor=None):
        self.summarizer = summarizer or generate_client_summary
        self.gateway    = gateway or default_gateway()
        self._executor  = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="summary")
        self._lock      = threading.Lock()
        self._token     = 0
        self._reset()

    def _reset(self) -> None:
        self.record          = OnboardingRecord()
        self.step_index      = 0
        self.narrative       = ""
        self.summary_pending = False
        self.submission      = None  # None | SUBMITTING | SUBMITTED | SUBMISSION_FAILED
        self.error           = None
        self._future         = None

    # ── Status ───────────────────────────────────────────────────────────────

    @property
    def state(self) -> str:
        if self.submission:
            return self.submission
        if self.summary_pending:
            return GENERATING_SUMMARY
        return READY if self.narrative else IDLE

    @property
    def step(self) -> dict:
        return STEPS[self.step_index]

    @property
    def on_review(self) -> bool:
        return self.step_index == REVIEW_INDEX

    @property
    def locked(self) -> bool:
        """No edits or navigation while submitting or after success."""
        return self.submission in (SUBMITTING, SUBMITTED)

    # ── Navigation ───────────────────────────────────────────────────────────

    def advance(self) -> bool:
        if self.locked or self.step_index >= REVIEW_INDEX:
            return False
        self.step_index += 1
        if self.on_review:
            self.enter_review_step()
        return True

    def retreat(self) -> bool:
        if self.locked or self.step_index <= 0:
            return False
        self.step_index -= 1
        return True

    def go_to(self, index: int) -> bool:
        index = max(0, min(int(index), REVIEW_INDEX))
        if self.locked or index == self.step_index:
            return False
        self.step_index = index
        if self.on_review:
            self.enter_review_step()
        return True

    # ── Summary ──────────────────────────────────────────────────────────────

    def enter_review_step(self) -> bool:
        """Start narrative generation unless one exists or is in flight."""
        with self._lock:
            if self.narrative or self.summary_pending:
                return False
            self.summary_pending = True
            token    = self._token
            snapshot = self.record.snapshot()
        self._future = self._executor.submit(self._generate, token, snapshot)
        return True

    def _generate(self, token: int, snapshot: OnboardingRecord) -> str:
        try:
            text = self.summarizer(snapshot)
        except Exception as exc:
            print(f"  ✗ summarizer raised: {exc}", flush=True)
            text = FALLBACK_SUMMARY
        with self._lock:
            if token != self._token:
                return text  # session restarted meanwhile
            self.narrative       = text or FALLBACK_SUMMARY
            self.summary_pending = False
        return text

    def wait_for_summary(self, timeout: float = None) -> str:
        if self._future is not None:
            self._future.result(timeout=timeout)
        return self.narrative

    # ── Submission ───────────────────────────────────────────────────────────

    def submit(self) -> bool:
        """Send record + narrative to the gateway. Returns True on success."""
        with self._lock:
            if not self.on_review or self.locked:
                return False
            self.submission = SUBMITTING
            self.error      = None
        payload = build_submission_payload(
            self.record.snapshot(),
            self.narrative,
            _iso_timestamp(),
        )
        try:
            ok = bool(self.gateway.send(payload))
        except Exception as exc:
            print(f"  ✗ gateway raised: {exc}", flush=True)
            ok = False
        if ok:
            self.submission = SUBMITTED
            print(f"  ✓ onboarding submitted for {self.record.full_name or 'client'}", flush=True)
        else:
            self.submission = SUBMISSION_FAILED
            self.error      = SUBMIT_ERROR
        return ok

    def restart(self) -> None:
        """Discard record and narrative; back to step 0."""
        with self._lock:
            self._token += 1
            self._reset()

    # ── Record edits ─────────────────────────────────────────────────────────

    def set_field(self, name: str, value) -> bool:
        if self.locked:
            return False
        self.record.set_field(name, value)
        return True

    def toggle(self, name: str) -> bool:
        if self.locked:
            return False
        self.record.toggle(name)
        return True

    def add_entity(self):
        if self.locked:
            return None
        return self.record.add_entity()

    def update_entity(self, entity_id: str, field_name: str, value) -> bool:
        if self.locked:
            return False
        return self.record.update_entity(entity_id, field_name, value)

    def remove_entity(self, entity_id: str) -> bool:
        if self.locked:
            return False
        return self.record.remove_entity(entity_id)

    def load_record(self, record: OnboardingRecord) -> bool:
        """Replace the record wholesale (intake pre-fill).

        A different client means the narrative no longer applies: it is
        dropped (an in-flight one is discarded on arrival) and regenerated
        straight away if the wizard is already on review.
        """
        with self._lock:
            if self.locked:
                return False
            self._token         += 1
            self.record          = record
            self.narrative       = ""
            self.summary_pending = False
            self.submission      = None
            self.error           = None
            self._future         = None
        if self.on_review:
            self.enter_review_step()
        return True

    # ── Derived views ────────────────────────────────────────────────────────

    def visibility(self) -> dict:
        r = self.record
        return {
            "spouse_details":  r.has_spouse,
            "entities":        r.has_entities,
            "medicare_number": r.has_medicare_card,
            "income_sources":  True,
        }

    def summary_cards(self) -> list:
        r = self.record
        return [
            ("Lead Member",    f"{r.first_name} {r.last_name}"),
            ("Spouse Profile", r.spouse_name if r.has_spouse else "Individual"),
            ("Complexity",     f"{len(r.entities)} Managed Entities" if r.has_entities else "Standard Individual"),
            ("Primary Income", _fmt_money(r.annual_salary)),
        ]


# ─────────────────────────────────────────────────────────────────────────────
# Mode: Review / Submit
# ─────────────────────────────────────────────────────────────────────────────

def _walk_to_review(intake_path: str, mock: bool, gateway=None) -> WizardController:
    if not Path(intake_path).exists():
        sys.exit(
            f"File not found: {intake_path}\n"
            "Run 'python onboarding_agent.py setup' to create sample data."
        )
    summarizer = functools.partial(generate_client_summary, mock=True) if mock else None
    wizard     = WizardController(summarizer=summarizer, gateway=gateway or default_gateway(mock))
    wizard.load_record(load_intake(intake_path))

    print(f"\n{'━' * 60}")
    print(f"  ONBOARDING WIZARD — {wizard.record.full_name}{'  [MOCK MODE]' if mock else ''}")
    print(f"{'━' * 60}\n")

    while wizard.advance():
        print(f"  → step {wizard.step_index + 1}/{len(STEPS)}: {wizard.step['label']}", flush=True)
    narrative = wizard.wait_for_summary()

    W = 60
    print(f"\n{'─' * W}")
    for label, value in wizard.summary_cards():
        print(f"  {label:<16}  {value}")
    print(f"{'─' * W}\n")
    print(narrative)
    return wizard


def review_client(intake_path: str, mock: bool = False) -> None:
    _walk_to_review(intake_path, mock)


def submit_client(intake_path: str, mock: bool = False) -> None:
    if not mock and not WEBHOOK_URL:
        print("  ONBOARDING_WEBHOOK_URL not set — delivering to the mock webhook.")
    wizard = _walk_to_review(intake_path, mock)
    print()
    if wizard.submit():
        print(f"  Status: {wizard.state}")
    else:
        print(f"  Status: {wizard.state}\n  {wizard.error}")
    if isinstance(wizard.gateway, MockWebhook):
        wizard.gateway.print_records()


# ─────────────────────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────────────────────

def main() -> None:
    parser = argparse.ArgumentParser(
        prog="onboarding_agent.py",
        description="Client Onboarding Wizard — powered by Claude",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Quick start (real mode):
  python onboarding_agent.py setup
  python onboarding_agent.py review
  python onboarding_agent.py submit

Mock mode (no API key):
  python onboarding_agent.py --mock review
  python onboarding_agent.py --mock submit
""",
    )
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Run without an API key or webhook using deterministic mock output",
    )
    sub = parser.add_subparsers(dest="cmd")

    sub.add_parser("setup", help="Generate a sample intake workbook")

    for name, help_text in (("review", "Walk the wizard to review and print the AI narrative"),
                            ("submit", "Review, then transmit the record to the webhook")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument(
            "--intake",
            default=str(INTAKE_PATH),
            metavar="PATH",
            help="Path to intake form (default: data/client_intake.xlsx)",
        )

    args = parser.parse_args()

    if not args.cmd:
        parser.print_help()
        return

    if args.cmd == "setup":
        create_sample_intake()
        return

    if not args.mock and not HAS_API_KEY:
        sys.exit(
            "Error: ANTHROPIC_API_KEY environment variable is not set.\n"
            "Tip: run with --mock to test without an API key."
        )

    if args.cmd == "review":
        review_client(args.intake, mock=args.mock)
    elif args.cmd == "submit":
        submit_client(args.intake, mock=args.mock)


if __name__ == "__main__":
    main()
