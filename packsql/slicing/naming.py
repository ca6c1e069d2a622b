"""
Domain Naming

Labels a group of tables with a human readable domain name by running an
ordered list of regex rules over the joined, lower-cased table names.
The first matching rule wins. Rules are plain data and can be loaded from
YAML so other languages or schemas can bring their own vocabulary.

Usage:
    namer = DomainNamer.default()
    namer.label_for(["Orders", "OrderItems", "Shippers"])  # "Sales & Shipping"
    slugify("Sales & Shipping")                            # "sales_shipping"
"""

import logging
import re
from collections.abc import Iterable
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_LABEL = "General"
DEFAULT_SATELLITE_PATTERN = r"\bCategories?\b|\bShippers?\b|\bNotifications?\b"


class NamingRule(BaseModel):
    """One label and the pattern that selects it."""

    label: str = Field(..., min_length=1, description="Domain label")
    pattern: str = Field(..., min_length=1, description="Regex over joined lower-case names")

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as exc:
            raise ValueError(f"Invalid naming pattern {v!r}: {exc}") from exc
        return v


DEFAULT_RULES: tuple[NamingRule, ...] = (
    NamingRule(
        label="Sales & Shipping",
        pattern=r"\border(s)?\b|\borderitems?\b|\borderdetails?\b|\bshipper(s)?\b|\bshipments?\b",
    ),
    NamingRule(
        label="Catalog & Content",
        pattern=r"\bproduct(s)?\b|\bcategories?\b|\breview(s)?\b",
    ),
    NamingRule(label="Customer", pattern=r"\bcustomer(s)?\b"),
    NamingRule(
        label="Finance (Expenses)",
        pattern=r"\bexpense(s)?\b|\bexpensecategories?\b|\binvoices?\b",
    ),
    NamingRule(
        label="Users & Permissions",
        pattern=r"\buser(s|role|roles)?\b|\brole(s)?\b|\bpermissions?\b",
    ),
    NamingRule(
        label="Operations & Logging",
        pattern=r"\berrorlog\b|\buseractivitylog\b|\bnotifications?\b|\baiquerylog\b|\blog\b|\berror\b",
    ),
    NamingRule(
        label="Marketplace Integrations",
        pattern=r"\bmarketplaceintegration(s)?\b|\bintegrations?\b",
    ),
    NamingRule(label="AI & Chat", pattern=r"\bchat(messages?|sessions?)\b|\bai\b"),
)


def slugify(label: str) -> str:
    """
    Turn a label into a lower-case identifier.

    Examples:
        >>> slugify("Sales & Shipping")
        'sales_shipping'
        >>> slugify("Finance (Expenses)")
        'finance_expenses'
    """
    text = label.lower().replace("&", " ").replace("/", " ").replace("\\", " ")
    text = re.sub(r"[^a-z0-9\s]+", "", text)
    return re.sub(r"\s+", "_", text.strip()).strip("_") or "pack"


class DomainNamer:
    """Ordered rule set for labelling table groups and spotting lookup tables."""

    def __init__(
        self,
        rules: Iterable[NamingRule],
        fallback_label: str = DEFAULT_FALLBACK_LABEL,
        satellite_pattern: str = DEFAULT_SATELLITE_PATTERN,
    ):
        self.rules = list(rules)
        self.fallback_label = fallback_label
        self._compiled = [(rule.label, re.compile(rule.pattern)) for rule in self.rules]
        self._satellite = re.compile(satellite_pattern, re.IGNORECASE)

    @classmethod
    def default(cls) -> "DomainNamer":
        return cls(DEFAULT_RULES)

    def label_for(self, tables: Iterable[str]) -> str:
        """Return the first matching rule label, or the fallback label."""
        joined = " ".join(tables).lower()
        for label, pattern in self._compiled:
            if pattern.search(joined):
                return label
        return self.fallback_label

    def is_satellite(self, table: str) -> bool:
        """Whether a table looks like a lookup table."""
        return bool(self._satellite.search(table))


def load_naming_rules(path: str | Path) -> DomainNamer:
    """
    Load a DomainNamer from YAML.

    Expected structure:
        fallback_label: General
        satellite_pattern: '\\bCategories?\\b'
        rules:
          - label: Sales & Shipping
            pattern: '\\border(s)?\\b'
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Naming rules not found: {file_path}")

    data = yaml.safe_load(file_path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Naming rules file must contain a mapping: {file_path}")

    rules = [NamingRule.model_validate(item) for item in data.get("rules", [])]
    logger.info(
        f"Loaded {len(rules)} naming rules from {file_path}",
        extra={"path": str(file_path), "rules": len(rules)},
    )
    return DomainNamer(
        rules,
        fallback_label=data.get("fallback_label", DEFAULT_FALLBACK_LABEL),
        satellite_pattern=data.get("satellite_pattern", DEFAULT_SATELLITE_PATTERN),
    )
