"""
Client onboarding record — the single in-memory aggregate the wizard fills in.

Holds identity, spouse, tax, entity, income and wealth answers for one
session, plus the ordered entity registry.  Field names on the wire are the
camelCase keys the receiving workflow expects (see FIELD_WIRE_NAMES).
"""

import copy
import uuid
from dataclasses import dataclass, field, fields
from pathlib import Path

import pandas as pd

# ─────────────────────────────────────────────────────────────────────────────
# Enumerations
# ─────────────────────────────────────────────────────────────────────────────

ENTITY_TYPES = {
    "company":     "Company",
    "trust":       "Family/Unit Trust",
    "smsf":        "SMSF",
    "partnership": "Partnership",
}

RESIDENCY_STATUSES = {
    "resident":        "Resident for Tax Purposes",
    "non-resident":    "Non-Resident",
    "working-holiday": "Working Holiday Maker",
}

INCOME_SOURCES = [
    ("has_interest_income", "Bank Interest"),
    ("has_dividends",       "Share Dividends"),
    ("has_rental_property", "Rental Property"),
    ("has_side_hustle",     "ABN / Side Business"),
]

_TRUTHY = {"yes", "y", "true", "1", "x", "✓"}


# ─────────────────────────────────────────────────────────────────────────────
# Value coercion (mirrors how the form's number / checkbox inputs parse)
# ─────────────────────────────────────────────────────────────────────────────

def _safe_float(val) -> float:
    """Parse a value to float, stripping $, commas, and leading +."""
    try:
        return float(str(val).replace(",", "").replace("$", "").replace("+", ""))
    except (ValueError, TypeError):
        return 0.0


def _as_bool(val) -> bool:
    if isinstance(val, bool):
        return val
    if val is None:
        return False
    return str(val).strip().lower() in _TRUTHY


def _fmt_money(val) -> str:
    """Format a number as $1,234,567 (negative → -$1,234,567)."""
    n = _safe_float(val)
    return f"-${abs(n):,.0f}" if n < 0 else f"${n:,.0f}"


# ─────────────────────────────────────────────────────────────────────────────
# Entity
# ─────────────────────────────────────────────────────────────────────────────

ENTITY_WIRE_NAMES = {
    "id":                  "id",
    "type":                "type",
    "name":                "name",
    "registration_number": "abn",
    "activity":            "activity",
}


def _new_entity_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Entity:
    """A business or investment structure attached to the client."""

    id:                  str = field(default_factory=_new_entity_id)
    type:                str = "company"
    name:                str = ""
    registration_number: str = ""
    activity:            str = ""

    def to_payload(self) -> dict:
        return {wire: getattr(self, attr) for attr, wire in ENTITY_WIRE_NAMES.items()}


_ENTITY_ALIASES = {
    **{wire: attr for attr, wire in ENTITY_WIRE_NAMES.items()},
    "registrationNumber": "registration_number",
}


def _entity_attr(name: str) -> str:
    if name in ENTITY_WIRE_NAMES:
        return name
    if name in _ENTITY_ALIASES:
        return _ENTITY_ALIASES[name]
    raise KeyError(f"Unknown entity field: {name!r}")


# ─────────────────────────────────────────────────────────────────────────────
# Onboarding Record
# ─────────────────────────────────────────────────────────────────────────────

FIELD_WIRE_NAMES = {
    "first_name":           "firstName",
    "last_name":            "lastName",
    "dob":                  "dob",
    "email":                "email",
    "phone":                "phone",
    "address":              "address",
    "has_spouse":           "hasSpouse",
    "spouse_name":          "spouseName",
    "spouse_doing_return":  "spouseDoingReturn",
    "has_entities":         "hasEntities",
    "entities":             "entities",
    "tfn":                  "tfn",
    "residency_status":     "residencyStatus",
    "has_medicare_card":    "hasMedicareCard",
    "medicare_number":      "medicareNumber",
    "annual_salary":        "annualSalary",
    "has_interest_income":  "hasInterestIncome",
    "has_dividends":        "hasDividends",
    "has_rental_property":  "hasRentalProperty",
    "has_side_hustle":      "hasSideHustle",
    "super_balance":        "superBalance",
    "total_assets":         "totalAssets",
    "total_debts":          "totalDebts",
    "primary_goal":         "primaryGoal",
}

_WIRE_TO_ATTR = {wire: attr for attr, wire in FIELD_WIRE_NAMES.items()}


@dataclass
class OnboardingRecord:
    """Every answer collected by the wizard, at documented defaults."""

    # Identity
    first_name: str = ""
    last_name:  str = ""
    dob:        str = ""
    email:      str = ""
    phone:      str = ""
    address:    str = ""

    # Spouse
    has_spouse:          bool = False
    spouse_name:         str  = ""
    spouse_doing_return: bool = False

    # Entities
    has_entities: bool = False
    entities:     list = field(default_factory=list)

    # Tax identity
    tfn:               str  = ""
    residency_status:  str  = "resident"
    has_medicare_card: bool = False
    medicare_number:   str  = ""

    # Income
    annual_salary:       float = 0.0
    has_interest_income: bool  = False
    has_dividends:       bool  = False
    has_rental_property: bool  = False
    has_side_hustle:     bool  = False

    # Wealth & goals
    super_balance: float = 0.0
    total_assets:  float = 0.0
    total_debts:   float = 0.0
    primary_goal:  str   = ""

    # ── Scalar fields ────────────────────────────────────────────────────────

    @staticmethod
    def attr_name(name: str) -> str:
        """Resolve a wire (camelCase) or attribute name to the attribute name."""
        if name in FIELD_WIRE_NAMES and name != "entities":
            return name
        if name in _WIRE_TO_ATTR and name != "entities":
            return _WIRE_TO_ATTR[name]
        raise KeyError(f"Unknown record field: {name!r}")

    def set_field(self, name: str, value) -> None:
        """Replace one scalar field, coercing the value to the field's type."""
        attr    = self.attr_name(name)
        current = getattr(self, attr)
        if isinstance(current, bool):
            value = _as_bool(value)
        elif isinstance(current, float):
            value = _safe_float(value)
        else:
            value = "" if value is None else str(value)
            if attr == "residency_status" and value not in RESIDENCY_STATUSES:
                raise ValueError(f"Unknown residency status: {value!r}")
        setattr(self, attr, value)

    def toggle(self, name: str) -> bool:
        """Flip a boolean flag and return its new value."""
        attr = self.attr_name(name)
        if not isinstance(getattr(self, attr), bool):
            raise ValueError(f"{name!r} is not a yes/no field")
        setattr(self, attr, not getattr(self, attr))
        return getattr(self, attr)

    # ── Entity registry ──────────────────────────────────────────────────────

    def add_entity(self) -> Entity:
        entity = Entity()
        self.entities.append(entity)
        return entity

    def find_entity(self, entity_id: str):
        return next((e for e in self.entities if e.id == entity_id), None)

    def update_entity(self, entity_id: str, field_name: str, value) -> bool:
        """Replace one field of one entity in place.

        A missing id is not an error: the UI may still hold a reference to an
        entity that was removed a moment ago.  Returns True if anything changed.
        """
        entity = self.find_entity(entity_id)
        if entity is None:
            return False
        attr = _entity_attr(field_name)
        if attr == "id":
            raise ValueError("Entity ids are fixed at creation")
        value = "" if value is None else str(value)
        if attr == "type" and value not in ENTITY_TYPES:
            raise ValueError(f"Unknown entity type: {value!r}")
        setattr(entity, attr, value)
        return True

    def remove_entity(self, entity_id: str) -> bool:
        before        = len(self.entities)
        self.entities = [e for e in self.entities if e.id != entity_id]
        return len(self.entities) != before

    # ── Derived values ───────────────────────────────────────────────────────

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def active_entities(self) -> list:
        """Entities that count — none at all while the entity flag is off."""
        return list(self.entities) if self.has_entities else []

    def income_sources(self) -> list:
        return [label for attr, label in INCOME_SOURCES if getattr(self, attr)]

    def net_position(self) -> float:
        return self.total_assets + self.super_balance - self.total_debts

    # ── Serialisation ────────────────────────────────────────────────────────

    def snapshot(self) -> "OnboardingRecord":
        return copy.deepcopy(self)

    def to_payload(self) -> dict:
        """Flatten to the camelCase JSON body (inert fields included)."""
        out = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "entities":
                value = [e.to_payload() for e in value]
            out[FIELD_WIRE_NAMES[f.name]] = value
        return out


# ─────────────────────────────────────────────────────────────────────────────
# Intake workbook  (Field / Value sheet + optional Entities sheet)
# ─────────────────────────────────────────────────────────────────────────────

INTAKE_LABELS = {
    "First Name":              "first_name",
    "Last Name":               "last_name",
    "Date of Birth":           "dob",
    "Email":                   "email",
    "Phone":                   "phone",
    "Address":                 "address",
    "Has Spouse":              "has_spouse",
    "Spouse Name":             "spouse_name",
    "Spouse Doing Return":     "spouse_doing_return",
    "Has Entities":            "has_entities",
    "TFN":                     "tfn",
    "Residency Status":        "residency_status",
    "Has Medicare Card":       "has_medicare_card",
    "Medicare Number":         "medicare_number",
    "Annual Salary":           "annual_salary",
    "Interest Income":         "has_interest_income",
    "Dividends":               "has_dividends",
    "Rental Property":         "has_rental_property",
    "Side Business":           "has_side_hustle",
    "Super Balance":           "super_balance",
    "Total Assets":            "total_assets",
    "Total Debts":             "total_debts",
    "Primary Goal":            "primary_goal",
}

ENTITY_COLUMNS = {
    "Type":     "type",
    "Name":     "name",
    "ABN":      "registration_number",
    "Activity": "activity",
}

NUMERIC_FIELDS = {"annual_salary", "super_balance", "total_assets", "total_debts"}

_RESIDENCY_BY_LABEL = {label.lower(): key for key, label in RESIDENCY_STATUSES.items()}
_ENTITY_BY_LABEL    = {label.lower(): key for key, label in ENTITY_TYPES.items()}


def _normalise_residency(raw: str) -> str:
    val = str(raw).strip().lower()
    if val in RESIDENCY_STATUSES:
        return val
    return _RESIDENCY_BY_LABEL.get(val, "resident")


def _normalise_entity_type(raw: str) -> str:
    val = str(raw).strip().lower()
    if val in ENTITY_TYPES:
        return val
    return _ENTITY_BY_LABEL.get(val, "company")


def record_from_intake(intake: dict, entity_rows: list = None) -> OnboardingRecord:
    """Build a record from a {label: value} intake mapping and entity rows."""
    record = OnboardingRecord()
    stated = set()
    for label, raw in intake.items():
        attr = INTAKE_LABELS.get(str(label).strip())
        if not attr or raw is None or str(raw).strip() == "":
            continue
        if attr == "residency_status":
            raw = _normalise_residency(raw)
        record.set_field(attr, raw)
        if attr in NUMERIC_FIELDS and getattr(record, attr) < 0:
            raise ValueError(f"{label} cannot be negative: {raw!r}")
        stated.add(attr)

    for row in entity_rows or []:
        entity = record.add_entity()
        for col, attr in ENTITY_COLUMNS.items():
            val = str(row.get(col, "") or "").strip()
            if attr == "type":
                val = _normalise_entity_type(val or "company")
            setattr(entity, attr, val)

    # Detail with no explicit flag implies the flag
    if "has_spouse" not in stated and record.spouse_name:
        record.has_spouse = True
    if "has_medicare_card" not in stated and record.medicare_number:
        record.has_medicare_card = True
    if "has_entities" not in stated and record.entities:
        record.has_entities = True
    return record


def load_intake(path) -> OnboardingRecord:
    """Read an intake workbook (.xlsx) into a fresh record."""
    book   = pd.ExcelFile(path)
    sheets = book.sheet_names
    df     = pd.read_excel(book, sheet_name=sheets[0], dtype=str).fillna("")
    intake = {r["Field"]: r.get("Value", "") for r in df.to_dict(orient="records")}

    entity_rows = []
    if "Entities" in sheets:
        edf         = pd.read_excel(book, sheet_name="Entities", dtype=str).fillna("")
        entity_rows = [r for r in edf.to_dict(orient="records") if any(str(v).strip() for v in r.values())]
    return record_from_intake(intake, entity_rows)


def write_intake(path, intake_rows: list, entity_rows: list = None) -> Path:
    """Write a Field/Value intake workbook (and Entities sheet if given)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as w:
        pd.DataFrame(intake_rows, columns=["Field", "Value"]).to_excel(
            w, sheet_name="Intake Form", index=False
        )
        if entity_rows:
            pd.DataFrame(entity_rows, columns=list(ENTITY_COLUMNS)).to_excel(
                w, sheet_name="Entities", index=False
            )
    return path


def entities_frame(record: OnboardingRecord) -> pd.DataFrame:
    """Tabular view of the active entities, for the review screen."""
    rows = [
        {
            "Type":     ENTITY_TYPES.get(e.type, e.type),
            "Name":     e.name or "—",
            "ABN/TFN":  e.registration_number or "—",
            "Activity": e.activity or "—",
        }
        for e in record.active_entities()
    ]
    return pd.DataFrame(rows, columns=["Type", "Name", "ABN/TFN", "Activity"])
