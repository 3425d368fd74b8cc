"""Render calculation summaries as text, CSV and PDF exports."""

from __future__ import annotations

import csv
import logging
import math
import os
import re
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from io import StringIO
from typing import Any

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from thaitax.config.schema import TaxBracket
from thaitax.engine import bracket_rows
from thaitax.localization import Translator, get_translator
from thaitax.models import BracketTax, TaxSummary

_LOGGER = logging.getLogger(__name__)

THAI_MONTHS: tuple[str, ...] = (
    "มกราคม",
    "กุมภาพันธ์",
    "มีนาคม",
    "เมษายน",
    "พฤษภาคม",
    "มิถุนายน",
    "กรกฎาคม",
    "สิงหาคม",
    "กันยายน",
    "ตุลาคม",
    "พฤศจิกายน",
    "ธันวาคม",
)
BUDDHIST_ERA_OFFSET = 543

_NUMBER_PREFIX = re.compile(r"-?(?:\d+\.?\d*|\.\d+)")


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def _whole(number: float) -> int:
    """Round to whole baht with halves away from zero, as browsers display them."""

    return int(Decimal(repr(number)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def format_number(value: Any) -> str:
    """Format ``value`` with thousands separators and no decimals."""

    number = _as_number(value)
    if number is None:
        return "0"
    return f"{_whole(number):,}"


def format_currency(
    value: Any, suffix: str = "บาท", include_suffix: bool = True
) -> str:
    """Format a baht amount, e.g. ``1,234 บาท`` or ``-500 บาท``."""

    number = _as_number(value)
    if number is None:
        return f"0 {suffix}" if include_suffix else "0"

    formatted = f"{_whole(abs(number)):,}"
    result = f"{formatted} {suffix}" if include_suffix else formatted
    return f"-{result}" if number < 0 and formatted != "0" else result


def format_percentage(value: Any, decimals: int = 0) -> str:
    """Format a 0-1 ratio as a percentage string."""

    number = _as_number(value)
    if number is None:
        return "0%"
    return f"{number * 100:.{decimals}f}%"


def parse_currency(text: Any) -> float:
    """Extract the number from a formatted currency string; unparsable gives 0."""

    if not isinstance(text, str):
        return 0.0
    cleaned = re.sub(r"[^\d.\-]", "", text)
    match = _NUMBER_PREFIX.match(cleaned)
    if match is None:
        return 0.0
    return float(match.group(0))


def format_thai_date(value: date | datetime) -> str:
    """Return ``day month year`` with the Thai month name and Buddhist year."""

    return f"{value.day} {THAI_MONTHS[value.month - 1]} {value.year + BUDDHIST_ERA_OFFSET}"


def format_thai_datetime(value: datetime) -> str:
    return f"{format_thai_date(value)} {value:%H:%M:%S}"


def _as_summary(summary: TaxSummary | Mapping[str, Any]) -> TaxSummary:
    if isinstance(summary, TaxSummary):
        return summary
    if isinstance(summary, Mapping):
        return TaxSummary.model_validate(dict(summary))
    raise ValueError("Summary must be a TaxSummary or a mapping")


class _Formatter:
    """Locale-bound helpers shared by every renderer."""

    def __init__(self, translator: Translator) -> None:
        self.t = translator
        self.suffix = translator("currency.suffix")

    def currency(self, value: float) -> str:
        return format_currency(value, suffix=self.suffix)

    def timestamp(self, value: datetime) -> str:
        if self.t.locale == "th":
            return format_thai_datetime(value)
        return f"{value:%Y-%m-%d %H:%M:%S}"

    def bracket_label(self, bracket: TaxBracket) -> str:
        lower = self.currency(bracket.min_net_income)
        if bracket.max_net_income is None:
            upper = self.t("bracket.and_above")
        else:
            upper = self.currency(bracket.max_net_income)
        return f"{lower} - {upper}"


def _sections(
    summary: TaxSummary, fmt: _Formatter
) -> list[tuple[str, list[tuple[str, str]]]]:
    t = fmt.t
    expenses = summary.expense_breakdown
    allowances = summary.allowance_breakdown
    personal = allowances.personal
    insurance = allowances.insurance

    return [
        (
            t("section.income"),
            [
                (t("income.salary"), fmt.currency(summary.salary)),
                (t("income.freelance"), fmt.currency(summary.freelance)),
                (t("income.merchant"), fmt.currency(summary.merchant)),
                (t("income.total"), fmt.currency(summary.total_income)),
            ],
        ),
        (
            t("section.expense"),
            [
                (t("expense.salary"), fmt.currency(expenses.salary_expense)),
                (t("expense.merchant"), fmt.currency(expenses.merchant_expense)),
                (t("expense.total"), fmt.currency(summary.expense)),
            ],
        ),
        (
            t("section.allowance"),
            [
                (t("allowance.personal_allowance"), fmt.currency(personal.personal_allowance)),
                (t("allowance.spouse"), fmt.currency(personal.spouse)),
                (t("allowance.child_old"), fmt.currency(personal.child_old)),
                (t("allowance.child_new"), fmt.currency(personal.child_new)),
                (t("allowance.parent"), fmt.currency(personal.parent)),
                (t("allowance.life_insurance"), fmt.currency(insurance.life_insurance)),
                (t("allowance.health_insurance"), fmt.currency(insurance.health_insurance)),
                (t("allowance.social_security"), fmt.currency(insurance.social_security)),
                (t("allowance.pvd"), fmt.currency(insurance.pvd)),
                (t("allowance.rmf"), fmt.currency(insurance.rmf)),
                (t("allowance.ssf"), fmt.currency(insurance.ssf)),
                (
                    t("allowance.home_loan_interest"),
                    fmt.currency(allowances.housing.home_loan_interest),
                ),
                (t("allowance.total"), fmt.currency(summary.allowance)),
            ],
        ),
        (
            t("section.result"),
            [
                (t("summary.net_income"), fmt.currency(summary.net_income)),
                (t("summary.tax"), fmt.currency(summary.tax)),
                (
                    t("summary.effective_tax_rate"),
                    format_percentage(summary.effective_tax_rate),
                ),
                (t("summary.net_salary"), fmt.currency(summary.net_salary)),
                (t("summary.withholding_tax"), fmt.currency(summary.withholding_tax)),
            ],
        ),
    ]


def _bracket_entries(
    summary: TaxSummary, brackets: Sequence[TaxBracket] | None
) -> Iterable[BracketTax]:
    if brackets is None:
        return summary.tax_breakdown.bracket_taxes
    return bracket_rows(summary.tax_breakdown, brackets)


def _bracket_lines(
    summary: TaxSummary, fmt: _Formatter, brackets: Sequence[TaxBracket] | None
) -> list[str]:
    return [
        f"{fmt.bracket_label(entry.bracket)}: "
        f"{format_percentage(entry.bracket.tax_rate)} = {fmt.currency(entry.tax)}"
        for entry in _bracket_entries(summary, brackets)
    ]


def _installment_lines(summary: TaxSummary, fmt: _Formatter) -> list[str]:
    if len(summary.installments) <= 1:
        return []
    return [
        f"{fmt.t('installment.label', index=index)}: {fmt.currency(amount)}"
        for index, amount in enumerate(summary.installments, start=1)
    ]


def _heading(title: str, underline: str = "-") -> list[str]:
    return [title, underline * max(len(title), 8)]


def render_text_report(
    summary: TaxSummary | Mapping[str, Any],
    locale: str | None = None,
    *,
    brackets: Sequence[TaxBracket] | None = None,
) -> str:
    """Render the full plain-text report.

    Bracket lines cover the populated brackets unless ``brackets`` is given,
    in which case every configured bracket is listed. Installments appear
    only when the tax is split into more than one payment.
    """

    model = _as_summary(summary)
    fmt = _Formatter(get_translator(locale))
    t = fmt.t

    lines = _heading(t("report.title"), "=")
    lines.append("")
    lines.append(f"{t('report.date')}: {fmt.timestamp(model.timestamp)}")

    for title, rows in _sections(model, fmt):
        lines.append("")
        lines.extend(_heading(title))
        lines.extend(f"{label}: {value}" for label, value in rows)

    lines.append("")
    lines.extend(_heading(t("section.brackets")))
    lines.extend(_bracket_lines(model, fmt, brackets))

    installment_lines = _installment_lines(model, fmt)
    if installment_lines:
        lines.append("")
        lines.extend(_heading(t("section.installments")))
        lines.extend(installment_lines)

    return "\n".join(lines) + "\n"


def render_share_text(
    summary: TaxSummary | Mapping[str, Any], locale: str | None = None
) -> str:
    """Render the short result text suitable for sharing."""

    model = _as_summary(summary)
    fmt = _Formatter(get_translator(locale))
    t = fmt.t

    return "\n".join(
        [
            t("share.heading"),
            f"{t('summary.total_income')}: {fmt.currency(model.total_income)}",
            f"{t('summary.net_income')}: {fmt.currency(model.net_income)}",
            f"{t('share.tax')}: {fmt.currency(model.tax)}",
            f"{t('summary.net_salary')}: {fmt.currency(model.net_salary)}",
            "",
            t("share.generated_with"),
        ]
    )


def render_csv(
    summary: TaxSummary | Mapping[str, Any],
    locale: str | None = None,
    *,
    brackets: Sequence[TaxBracket] | None = None,
) -> str:
    """Render a three column ``section, item, amount`` CSV export."""

    model = _as_summary(summary)
    fmt = _Formatter(get_translator(locale))
    t = fmt.t

    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow([t("csv.section"), t("csv.item"), t("csv.amount")])

    for title, rows in _sections(model, fmt):
        for label, value in rows:
            writer.writerow([title, label, value])

    section = t("section.brackets")
    for entry in _bracket_entries(model, brackets):
        writer.writerow(
            [
                section,
                f"{fmt.bracket_label(entry.bracket)} ({format_percentage(entry.bracket.tax_rate)})",
                fmt.currency(entry.tax),
            ]
        )

    section = t("section.installments")
    for index, amount in enumerate(model.installments, start=1):
        writer.writerow([section, t("installment.label", index=index), fmt.currency(amount)])

    return buffer.getvalue()


def render_pdf(
    summary: TaxSummary | Mapping[str, Any],
    locale: str | None = None,
    font_path: str | os.PathLike[str] | None = None,
    *,
    brackets: Sequence[TaxBracket] | None = None,
) -> bytes:
    """Render the report as a single PDF document.

    Thai text needs a Unicode TrueType font supplied through ``font_path``.
    Without one the core Helvetica font is used and labels fall back to
    English.
    """

    model = _as_summary(summary)

    pdf = FPDF()
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()

    if font_path is not None and os.path.exists(font_path):
        pdf.add_font("Report", fname=str(font_path))
        heading_family = body_family = "Report"
        heading_style = ""
        translator = get_translator(locale)
    else:
        if font_path is not None:
            _LOGGER.warning("PDF font not found at %s; using Helvetica", font_path)
        heading_family = body_family = "Helvetica"
        heading_style = "B"
        translator = get_translator("en")

    fmt = _Formatter(translator)
    t = fmt.t

    pdf.set_title(t("report.title"))
    pdf.set_text_color(33, 37, 41)

    pdf.set_font(heading_family, style=heading_style, size=16)
    pdf.cell(0, 10, t("report.title"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    pdf.set_font(body_family, size=10)
    pdf.cell(
        0,
        6,
        f"{t('report.date')}: {fmt.timestamp(model.timestamp)}",
        new_x=XPos.LMARGIN,
        new_y=YPos.NEXT,
    )

    def section(title: str, lines: Iterable[str]) -> None:
        pdf.ln(3)
        pdf.set_font(heading_family, style=heading_style, size=12)
        pdf.cell(0, 8, title, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        pdf.set_font(body_family, size=10)
        for line in lines:
            pdf.multi_cell(pdf.epw, 6, line, new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    for title, rows in _sections(model, fmt):
        section(title, (f"{label}: {value}" for label, value in rows))

    section(t("section.brackets"), _bracket_lines(model, fmt, brackets))

    installment_lines = _installment_lines(model, fmt)
    if installment_lines:
        section(t("section.installments"), installment_lines)

    pdf.ln(6)
    pdf.multi_cell(0, 6, t("share.generated_with"))

    output = pdf.output()
    if isinstance(output, (bytes, bytearray)):
        return bytes(output)
    return output.encode("latin1")


__all__ = [
    "BUDDHIST_ERA_OFFSET",
    "THAI_MONTHS",
    "format_currency",
    "format_number",
    "format_percentage",
    "format_thai_date",
    "format_thai_datetime",
    "parse_currency",
    "render_csv",
    "render_pdf",
    "render_share_text",
    "render_text_report",
]
