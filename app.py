#!/usr/bin/env python3
"""
Private Client Onboarding — Streamlit UI
Run: streamlit run app.py
"""

import os
import sys
from pathlib import Path
from datetime import datetime

import streamlit as st

# ── Resolve paths regardless of CWD ──────────────────────────────────────────
HERE = Path(__file__).parent.resolve()
os.chdir(HERE)
sys.path.insert(0, str(HERE))

from onboarding_record import (
    ENTITY_TYPES, INCOME_SOURCES, RESIDENCY_STATUSES,
    entities_frame, load_intake,
)
from onboarding_agent import (
    HAS_API_KEY, INTAKE_PATH, STEPS, WEBHOOK_URL, WizardController,
    GENERATING_SUMMARY, SUBMITTED, SUBMITTING, create_sample_intake, default_gateway,
)

# ── Brand constants ───────────────────────────────────────────────────────────
BRAND   = "Private Wealth & Tax"
PRODUCT = "Client Onboarding Portal"

# ── Page config (MUST be first Streamlit call) ────────────────────────────────
st.set_page_config(
    page_title=f"{BRAND}",
    page_icon="⬡",
    layout="centered",
    initial_sidebar_state="expanded",
)

# ─────────────────────────────────────────────────────────────────────────────
# CSS
# ─────────────────────────────────────────────────────────────────────────────

st.markdown("""
<style>
:root {
  --bg:       #F8FAFC;
  --ink:      #0F172A;
  --muted:    #64748B;
  --accent:   #4F46E5;
  --accent-d: rgba(79,70,229,0.08);
  --green:    #10B981;
  --border:   #E2E8F0;
}
.ai-step-row { display: flex; gap: 0; margin-bottom: 2rem; border: 1px solid var(--border); border-radius: 10px; overflow: hidden; }
.ai-step { flex: 1; padding: 0.6rem 0.4rem; text-align: center; font-size: 0.68rem; font-weight: 600; letter-spacing: 0.05em; text-transform: uppercase; background: #fff; color: var(--muted); border-right: 1px solid var(--border); }
.ai-step:last-child { border-right: none; }
.ai-step.active { background: var(--accent-d); color: var(--accent); }
.ai-step.done { background: rgba(16,185,129,0.08); color: var(--green); }
</style>
""", unsafe_allow_html=True)


# ─────────────────────────────────────────────────────────────────────────────
# HTML UI helpers
# ─────────────────────────────────────────────────────────────────────────────

def _html_page_header(title: str, subtitle: str = "") -> None:
    sub_html = (
        f'<p style="color:#64748B;font-size:0.86rem;margin:0.3rem 0 0;">{subtitle}</p>'
        if subtitle else ""
    )
    st.markdown(f"""
<div style="margin-bottom:1.2rem;">
  <h2 style="margin:0;padding:0;color:#0F172A;">{title}</h2>
  {sub_html}
</div>
""", unsafe_allow_html=True)


def _html_section_header(title: str) -> None:
    st.markdown(f"""
<div style="margin:1.4rem 0 0.6rem;padding-bottom:0.4rem;border-bottom:1px solid #E2E8F0;
     color:#0F172A;font-size:0.74rem;font-weight:700;text-transform:uppercase;letter-spacing:0.1em;">
  {title}
</div>
""", unsafe_allow_html=True)


def _html_callout(text: str, level: str = "info") -> None:
    cfg = {
        "info":    ("rgba(79,70,229,0.06)",  "#4338CA", "rgba(79,70,229,0.4)"),
        "alert":   ("rgba(239,68,68,0.06)",  "#B91C1C", "rgba(239,68,68,0.4)"),
        "success": ("rgba(16,185,129,0.06)", "#047857", "rgba(16,185,129,0.4)"),
    }
    bg, tc, border = cfg.get(level, cfg["info"])
    st.markdown(f"""
<div style="background:{bg};border-left:3px solid {border};border-radius:0 8px 8px 0;
     padding:0.6rem 1rem;margin:0.4rem 0;font-size:0.87rem;color:{tc};">
  {text}
</div>
""", unsafe_allow_html=True)


def _html_stat_row(stats: list) -> None:
    cards = ""
    for label, value in stats:
        cards += f"""
<div style="flex:1;background:#fff;border:1px solid #E2E8F0;border-radius:10px;padding:0.8rem 1rem;">
  <div style="color:#94A3B8;font-size:0.62rem;font-weight:700;text-transform:uppercase;
       letter-spacing:0.1em;">{label}</div>
  <div style="color:#0F172A;font-size:1rem;font-weight:700;margin-top:3px;">{value or "—"}</div>
</div>"""
    st.markdown(
        f'<div style="display:flex;gap:0.6rem;margin:0.75rem 0;flex-wrap:wrap;">{cards}</div>',
        unsafe_allow_html=True,
    )


def _html_step_bar(steps: list, active_idx: int) -> None:
    """Render a horizontal step progress bar. steps = [label,...], active_idx = 0-based."""
    parts = ""
    for i, s in enumerate(steps):
        if i < active_idx:
            cls = "done"
        elif i == active_idx:
            cls = "active"
        else:
            cls = ""
        num = f"{'✓' if i < active_idx else i+1}"
        parts += f'<div class="ai-step {cls}">{num} &nbsp; {s}</div>'
    st.markdown(f'<div class="ai-step-row">{parts}</div>', unsafe_allow_html=True)


def _html_footer() -> None:
    st.markdown(f"""
<div style="margin-top:3rem;padding:0.8rem 0;border-top:1px solid #E2E8F0;
     display:flex;justify-content:space-between;color:#94A3B8;font-size:0.67rem;">
  <span>{PRODUCT} &nbsp;·&nbsp; © {datetime.now().year}</span>
  <span>Secure, encrypted transmission</span>
</div>
""", unsafe_allow_html=True)


# ─────────────────────────────────────────────────────────────────────────────
# Session
# ─────────────────────────────────────────────────────────────────────────────

if "ob_wizard" not in st.session_state:
    st.session_state["ob_wizard"] = WizardController(gateway=default_gateway())
st.session_state.setdefault("ob_session", 0)

wizard: WizardController = st.session_state["ob_wizard"]
record = wizard.record


def _key(name: str) -> str:
    # Widget keys change per session so a restart shows fresh widgets
    return f"ob_{st.session_state['ob_session']}_{name}"


def _text(label: str, attr: str, **kwargs) -> None:
    val = st.text_input(label, value=getattr(record, attr), key=_key(attr),
                        disabled=wizard.locked, **kwargs)
    if val != getattr(record, attr):
        wizard.set_field(attr, val)


def _number(label: str, attr: str) -> None:
    val = st.number_input(label, min_value=0.0, step=1000.0, format="%.0f",
                          value=max(0.0, float(getattr(record, attr))), key=_key(attr),
                          disabled=wizard.locked)
    if val != getattr(record, attr):
        wizard.set_field(attr, val)


def _flag(label: str, attr: str, help_text: str = None) -> None:
    val = st.toggle(label, value=getattr(record, attr), key=_key(attr),
                    help=help_text, disabled=wizard.locked)
    if val != getattr(record, attr):
        wizard.toggle(attr)


def _restart() -> None:
    wizard.restart()
    st.session_state["ob_session"] += 1
    st.rerun()


# ─────────────────────────────────────────────────────────────────────────────
# Sidebar
# ─────────────────────────────────────────────────────────────────────────────

with st.sidebar:
    st.markdown(f"**⬡ {BRAND}**")
    st.caption(PRODUCT)
    st.divider()

    st.caption("AI insight: " + ("Claude" if HAS_API_KEY else "offline mock"))
    st.caption("Webhook: " + ("configured" if WEBHOOK_URL else "mock (ONBOARDING_WEBHOOK_URL not set)"))
    st.divider()

    if st.button("⚙  Generate Sample Intake", use_container_width=True):
        with st.spinner("Creating sample intake…"):
            create_sample_intake()
        st.success("Sample intake created.")

    upload = st.file_uploader("Pre-fill from intake form (.xlsx)", type=["xlsx"], key=_key("upload"))
    use_sample = INTAKE_PATH.exists() and st.button("Load sample intake", use_container_width=True)
    if (upload is not None or use_sample) and not wizard.locked:
        try:
            loaded = load_intake(upload if upload is not None else INTAKE_PATH)
        except Exception as exc:
            st.error(f"Error reading intake form: {exc}")
        else:
            wizard.load_record(loaded)
            st.session_state["ob_session"] += 1
            st.rerun()

    st.divider()
    if st.button("⟳  Start New Onboarding", use_container_width=True):
        _restart()


# ─────────────────────────────────────────────────────────────────────────────
# Submitted
# ─────────────────────────────────────────────────────────────────────────────

if wizard.state == SUBMITTED:
    _html_page_header("Onboarding Complete", "Your information has been securely transmitted.")
    _html_callout(
        f"<strong>Thank you, {record.first_name or 'and welcome'}.</strong> "
        "Your advisor will be in touch to schedule a discovery meeting.",
        "success",
    )
    if st.button("⟳  Start New Onboarding", type="primary"):
        _restart()
    _html_footer()
    st.stop()


# ─────────────────────────────────────────────────────────────────────────────
# Wizard steps
# ─────────────────────────────────────────────────────────────────────────────

step = wizard.step
_html_page_header(step["label"], step["description"])
_html_step_bar([s["label"] for s in STEPS], wizard.step_index)
vis = wizard.visibility()

if step["key"] == "identity":
    _html_section_header("Personal Details")
    c1, c2 = st.columns(2)
    with c1:
        _text("First Name", "first_name", placeholder="Legal first name")
        _text("Date of Birth", "dob", placeholder="YYYY-MM-DD")
        _text("Phone", "phone")
    with c2:
        _text("Last Name", "last_name", placeholder="Surname")
        _text("Email Address", "email", placeholder="Primary contact email")
        _text("Residential Address", "address")

    _html_section_header("Spouse Profile")
    _flag("Include spouse", "has_spouse", "Include details for joint wealth planning.")
    if vis["spouse_details"]:
        _text("Spouse Full Name", "spouse_name", placeholder="Full legal name")
        _flag("Spouse is also lodging a return with us", "spouse_doing_return")

elif step["key"] == "tax":
    _html_section_header("Tax Identity")
    _text("Tax File Number (TFN)", "tfn", placeholder="000 000 000", max_chars=9)
    options = list(RESIDENCY_STATUSES)
    choice  = st.selectbox(
        "Residency Status",
        options,
        index=options.index(record.residency_status),
        format_func=RESIDENCY_STATUSES.get,
        key=_key("residency_status"),
        disabled=wizard.locked,
    )
    if choice != record.residency_status:
        wizard.set_field("residency_status", choice)

    _flag("I hold a Medicare card", "has_medicare_card")
    if vis["medicare_number"]:
        _text("Medicare Card Number", "medicare_number", placeholder="Number and reference")

elif step["key"] == "entities":
    _html_section_header("Business & Investment Structures")
    _flag("I control companies, trusts, SMSFs or partnerships", "has_entities")
    if vis["entities"]:
        types = list(ENTITY_TYPES)
        for n, entity in enumerate(list(record.entities), start=1):
            with st.container(border=True):
                head, rm = st.columns([5, 1])
                head.markdown(f"**Structure {n}**")
                if rm.button("🗑", key=_key(f"rm_{entity.id}"), disabled=wizard.locked):
                    wizard.remove_entity(entity.id)
                    st.rerun()
                etype = st.selectbox("Entity Type", types, index=types.index(entity.type),
                                     format_func=ENTITY_TYPES.get, key=_key(f"type_{entity.id}"))
                name  = st.text_input("Entity Legal Name", value=entity.name, key=_key(f"name_{entity.id}"))
                abn   = st.text_input("ABN or TFN", value=entity.registration_number, key=_key(f"abn_{entity.id}"))
                act   = st.text_input("Primary Activity", value=entity.activity, key=_key(f"act_{entity.id}"))
                for fld, val in (("type", etype), ("name", name),
                                 ("registration_number", abn), ("activity", act)):
                    if val != getattr(entity, fld):
                        wizard.update_entity(entity.id, fld, val)
        if st.button("＋  Register Additional Structure", disabled=wizard.locked):
            wizard.add_entity()
            st.rerun()

elif step["key"] == "income":
    _html_section_header("Primary Income")
    _number("Gross Annual Salary", "annual_salary")
    _html_section_header("Other Income Sources")
    cols = st.columns(2)
    for i, (attr, label) in enumerate(INCOME_SOURCES):
        with cols[i % 2]:
            val = st.checkbox(label, value=getattr(record, attr), key=_key(attr), disabled=wizard.locked)
            if val != getattr(record, attr):
                wizard.toggle(attr)

elif step["key"] == "wealth":
    _html_section_header("Balance Sheet")
    c1, c2 = st.columns(2)
    with c1:
        _number("Total Superannuation", "super_balance")
    with c2:
        _number("Investment Assets", "total_assets")
    _number("Consolidated Liabilities (Debt)", "total_debts")
    _html_section_header("Strategic Goals")
    goal = st.text_area(
        "Primary goal",
        value=record.primary_goal,
        placeholder="Briefly describe your primary wealth management or tax goals.",
        key=_key("primary_goal"),
        disabled=wizard.locked,
    )
    if goal != record.primary_goal:
        wizard.set_field("primary_goal", goal)

elif step["key"] == "review":
    _html_section_header("AI Strategy Insight")
    if wizard.state == GENERATING_SUMMARY:
        st.info("Claude is preparing your strategic summary… you can keep reviewing in the meantime.")
        if st.button("⟳  Check for insight"):
            st.rerun()
    else:
        with st.container(border=True):
            st.markdown(wizard.narrative)

    _html_stat_row(wizard.summary_cards())

    if record.has_entities and record.entities:
        _html_section_header("Managed Structures")
        st.dataframe(entities_frame(record), use_container_width=True, hide_index=True)

    if wizard.error:
        _html_callout(wizard.error, "alert")


# ─────────────────────────────────────────────────────────────────────────────
# Navigation
# ─────────────────────────────────────────────────────────────────────────────

st.markdown("")
col_back, _, col_next = st.columns([1, 2, 1])
with col_back:
    if st.button("◀  Back", disabled=wizard.step_index == 0 or wizard.state == SUBMITTING,
                 use_container_width=True):
        wizard.retreat()
        st.rerun()
with col_next:
    if wizard.on_review:
        if st.button("Submit  ▶", type="primary", disabled=wizard.locked, use_container_width=True):
            with st.status("Transmitting securely…", expanded=False) as sb:
                ok = wizard.submit()
                sb.update(label="Submitted" if ok else "Submission failed",
                          state="complete" if ok else "error")
            st.rerun()
    elif st.button("Next  ▶", type="primary", use_container_width=True):
        wizard.advance()
        st.rerun()

_html_footer()
