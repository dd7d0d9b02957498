"""Classify parsed charge sheet rows as valid, invalid or excluded."""

from dataclasses import dataclass, field, asdict
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Set

from app.services.spreadsheet_parser import (
    AMOUNT_COLUMN,
    HOUSE_NO_COLUMN,
    MEMBER_NAME_COLUMN,
    REMARK_COLUMN,
    ParsedRow,
)

REASON_MISSING = "MISSING"
REASON_NON_NUMERIC = "NON_NUMERIC"


@dataclass
class ValidRow:
    row_number: int
    house_no: str
    member_name: str
    total_price: Decimal
    remark: Optional[str] = None


@dataclass
class SkippedRow:
    row_number: int
    reason: str
    house_no: Optional[str] = None
    member_name: Optional[str] = None
    amount: Optional[str] = None


@dataclass
class ValidationReport:
    valid_rows: List[ValidRow] = field(default_factory=list)
    skipped_rows: List[SkippedRow] = field(default_factory=list)
    excluded_rows: List[int] = field(default_factory=list)
    total_amount: Decimal = Decimal("0")

    @property
    def valid_count(self) -> int:
        return len(self.valid_rows)

    @property
    def invalid_count(self) -> int:
        return len(self.skipped_rows)

    def diagnostics(self) -> Dict[str, Any]:
        return {
            "valid_count": self.valid_count,
            "invalid_count": self.invalid_count,
            "total_amount": str(self.total_amount),
            "skipped_rows": [asdict(row) for row in self.skipped_rows],
            "excluded_rows": list(self.excluded_rows),
        }


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        # Whole numbers read from a workbook come back as floats (e.g. unit 101.0)
        return str(int(value))
    return str(value).strip()


def parse_amount(value: Any) -> Optional[Decimal]:
    """Finite Decimal for numbers and numeric strings ("1,500" included); None otherwise."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        text = str(value)
    else:
        text = _text(value).replace(",", "")
    try:
        amount = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def validate_rows(rows: Iterable[ParsedRow], excluded_rows: Iterable[int] = ()) -> ValidationReport:
    """
    Produce exactly one outcome per row.

    Excluded wins over everything; then missing unit/member/amount; then a
    non-numeric amount. Row numbers are the parser's 1-based positions.
    """
    excluded: Set[int] = {int(number) for number in excluded_rows}
    report = ValidationReport()

    for row in rows:
        if row.row_number in excluded:
            report.excluded_rows.append(row.row_number)
            continue

        house_no = _text(row.values.get(HOUSE_NO_COLUMN))
        member_name = _text(row.values.get(MEMBER_NAME_COLUMN))
        raw_amount = row.values.get(AMOUNT_COLUMN)
        amount_text = _text(raw_amount)

        if not house_no or not member_name or not amount_text:
            report.skipped_rows.append(SkippedRow(
                row_number=row.row_number,
                reason=REASON_MISSING,
                house_no=house_no or None,
                member_name=member_name or None,
                amount=amount_text or None,
            ))
            continue

        amount = parse_amount(raw_amount)
        if amount is None:
            report.skipped_rows.append(SkippedRow(
                row_number=row.row_number,
                reason=REASON_NON_NUMERIC,
                house_no=house_no,
                member_name=member_name,
                amount=amount_text,
            ))
            continue

        remark = _text(row.values.get(REMARK_COLUMN)) or None
        report.valid_rows.append(ValidRow(
            row_number=row.row_number,
            house_no=house_no,
            member_name=member_name,
            total_price=amount,
            remark=remark,
        ))
        report.total_amount += amount

    return report
