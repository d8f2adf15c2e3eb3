"""
CSV parsing and rendering for the bulk tooling.

Parsing validates every data row independently: rows that fail are reported
as :class:`RowError` (with their 1-based row number and offending value) and
left out of the returned rows; the caller persists only the valid ones.
"""

import csv
import io
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Generic, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from spv_ledger.core.exceptions import ValidationFailed
from spv_ledger.schemas.imports import AllocationImportRow, InvestorImportRow, RowError

RowT = TypeVar("RowT", bound=BaseModel)

INVESTOR_REQUIRED_COLUMNS = ("name", "email")
INVESTOR_OPTIONAL_COLUMNS = ("company", "type", "wallet_address", "kyc_status", "notes")
ALLOCATION_REQUIRED_COLUMNS = ("subscription_id", "token_type", "token_amount")
ALLOCATION_OPTIONAL_COLUMNS = ("notes",)


@dataclass
class ParsedRow(Generic[RowT]):
    row: int
    data: RowT


@dataclass
class ParseResult(Generic[RowT]):
    rows: List[ParsedRow[RowT]] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.rows) + len({e.row for e in self.errors})


def decode_upload(payload: bytes) -> str:
    """Decode an uploaded file as UTF-8, tolerating a byte-order mark."""
    try:
        return payload.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ValidationFailed("File must be UTF-8 encoded CSV")


def _reader(text: str, required: Sequence[str]) -> csv.DictReader:
    reader = csv.DictReader(io.StringIO(text))
    headers = [h.strip().lower() for h in (reader.fieldnames or [])]
    missing = [c for c in required if c not in headers]
    if missing:
        raise ValidationFailed(
            f"Missing required headers: {', '.join(missing)}",
            details=[{"field": c, "message": "required column"} for c in missing],
        )
    reader.fieldnames = headers
    return reader


def _row_errors(row_number: int, raw: dict, exc: ValidationError) -> List[RowError]:
    errors = []
    for err in exc.errors():
        column = str(err["loc"][0]) if err["loc"] else None
        ctx_error = (err.get("ctx") or {}).get("error")
        detail = str(ctx_error) if ctx_error is not None else err["msg"]
        value = raw.get(column) if column else None
        errors.append(
            RowError(
                row=row_number,
                field=column,
                value=value,
                message=f"Row {row_number}: {detail}",
            )
        )
    return errors


def _parse(text: str, required: Sequence[str], columns: Sequence[str],
           model: Type[RowT]) -> ParseResult[RowT]:
    result: ParseResult[RowT] = ParseResult()
    reader = _reader(text, required)
    for raw in reader:
        # Data row position in the file, so blank lines still count.
        row_number = reader.line_num - 1
        values = {c: raw.get(c) for c in columns}
        if not any((v or "").strip() for v in values.values()):
            continue  # blank line
        try:
            result.rows.append(ParsedRow(row=row_number, data=model(**values)))
        except ValidationError as exc:
            result.errors.extend(_row_errors(row_number, values, exc))
    return result


def parse_investor_csv(text: str) -> ParseResult[InvestorImportRow]:
    """
    Parse an investor upload.

    Beyond per-row validation, an email appearing on more than one row is a
    batch-level error: every row carrying it is rejected.
    """
    result = _parse(
        text,
        INVESTOR_REQUIRED_COLUMNS,
        INVESTOR_REQUIRED_COLUMNS + INVESTOR_OPTIONAL_COLUMNS,
        InvestorImportRow,
    )

    rows_by_email: dict[str, List[int]] = {}
    for parsed in result.rows:
        rows_by_email.setdefault(parsed.data.email, []).append(parsed.row)
    duplicates = {email: rows for email, rows in rows_by_email.items() if len(rows) > 1}
    if duplicates:
        kept = []
        for parsed in result.rows:
            rows = duplicates.get(parsed.data.email)
            if rows is None:
                kept.append(parsed)
                continue
            result.errors.append(
                RowError(
                    row=parsed.row,
                    field="email",
                    value=parsed.data.email,
                    message=(
                        f"Duplicate email '{parsed.data.email}' found in rows "
                        f"{', '.join(str(r) for r in rows)}"
                    ),
                )
            )
        result.rows = kept

    result.errors.sort(key=lambda e: e.row)
    return result


def parse_allocation_csv(text: str) -> ParseResult[AllocationImportRow]:
    return _parse(
        text,
        ALLOCATION_REQUIRED_COLUMNS,
        ALLOCATION_REQUIRED_COLUMNS + ALLOCATION_OPTIONAL_COLUMNS,
        AllocationImportRow,
    )


# ────────────────────────────────────────────────────────────────────────────
# Export
# ────────────────────────────────────────────────────────────────────────────


@dataclass
class ExportOptions:
    include_investor_details: bool = False
    include_subscription_details: bool = False
    include_status: bool = False
    file_format: str = "csv"


@dataclass
class ExportRow:
    token_type: str
    amount: Decimal
    investor_name: str = ""
    investor_email: str = ""
    wallet_address: Optional[str] = None
    subscription_ref: str = ""
    currency: str = ""
    subscription_amount: Decimal = Decimal("0")
    confirmed: bool = False
    minted: bool = False
    distributed: bool = False


def _plain_number(value: Decimal) -> Decimal:
    """Drop trailing zeros without switching to exponent notation."""
    value = Decimal(value)
    if value == value.to_integral_value():
        return value.quantize(Decimal(1))
    return value.normalize()


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def export_headers(options: ExportOptions) -> List[str]:
    headers = ["Token Type", "Allocated Amount"]
    if options.include_investor_details:
        headers += ["Investor Name", "Investor Email", "Wallet Address"]
    if options.include_subscription_details:
        headers += ["Subscription ID", "Currency", "Subscription Amount"]
    if options.include_status:
        headers += ["Confirmed", "Minted", "Distributed"]
    return headers


def render_allocations_csv(rows: Sequence[ExportRow], options: ExportOptions) -> str:
    """Header row then one row per allocation; strings quoted, numbers bare."""
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writerow(export_headers(options))
    for r in rows:
        line: list = [r.token_type, _plain_number(r.amount)]
        if options.include_investor_details:
            line += [r.investor_name, r.investor_email, r.wallet_address or ""]
        if options.include_subscription_details:
            line += [r.subscription_ref, r.currency, _plain_number(r.subscription_amount)]
        if options.include_status:
            line += [_yes_no(r.confirmed), _yes_no(r.minted), _yes_no(r.distributed)]
        writer.writerow(line)
    return output.getvalue()


def export_filename(file_format: str, today: date) -> str:
    """``token_allocations_export_<YYYY-MM-DD>.csv`` (``.xlsx`` carries the same CSV bytes)."""
    extension = "xlsx" if file_format == "xlsx" else "csv"
    return f"token_allocations_export_{today.isoformat()}.{extension}"
