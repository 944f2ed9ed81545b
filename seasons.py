"""Season enrollment and fee-collection reports.

Two shapes are built here: a per-season roll-up appended to the organization
report (``SeasonsReportData``) and a single-season roster with payments
(``SeasonReportData``) exported on its own.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional, Protocol, Sequence

from models import EnrollmentStatus, PaymentStatus, SeasonStatus
from money import classify_payment


class PaymentRow(Protocol):
    id: str
    payment_date: date
    amount_cents: int
    payment_method: Optional[str]
    notes: Optional[str]


class StudentRow(Protocol):
    first_name: str
    last_name: str
    guardian_name: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    guardian_email: Optional[str]
    guardian_phone: Optional[str]


class EnrollmentRow(Protocol):
    id: str
    fee_amount_cents: int
    status: EnrollmentStatus
    student: StudentRow
    payments: Sequence[PaymentRow]


class SeasonRow(Protocol):
    name: str
    description: Optional[str]
    start_date: date
    end_date: date
    fee_amount_cents: int
    status: SeasonStatus
    enrollments: Sequence[EnrollmentRow]


@dataclass(frozen=True)
class SeasonTotals:
    enrolled_count: int
    total_expected_cents: int
    total_collected_cents: int
    total_outstanding_cents: int
    collection_rate: float


@dataclass(frozen=True)
class SeasonSummaryLine:
    season_name: str
    start_date: date
    end_date: date
    base_fee_cents: int
    totals: SeasonTotals


@dataclass(frozen=True)
class SeasonsReportData:
    seasons: tuple[SeasonSummaryLine, ...]
    grand_totals: SeasonTotals


@dataclass(frozen=True)
class SeasonReportPayment:
    id: str
    payment_date: date
    amount_cents: int
    payment_method: Optional[str]
    notes: Optional[str]


@dataclass(frozen=True)
class SeasonReportEnrollment:
    id: str
    student_name: str
    guardian_name: Optional[str]
    contact_email: Optional[str]
    contact_phone: Optional[str]
    fee_amount_cents: int
    total_paid_cents: int
    balance_due_cents: int
    payment_status: PaymentStatus
    enrollment_status: EnrollmentStatus
    payments: tuple[SeasonReportPayment, ...]


@dataclass(frozen=True)
class SeasonReportSummary:
    total_enrolled: int
    total_fees_expected_cents: int
    total_collected_cents: int
    total_outstanding_cents: int
    collection_rate: float


@dataclass(frozen=True)
class SeasonReportData:
    organization_name: str
    season_name: str
    season_description: Optional[str]
    start_date: date
    end_date: date
    fee_amount_cents: int
    status: SeasonStatus
    generated_at: datetime
    summary: SeasonReportSummary
    enrollments: tuple[SeasonReportEnrollment, ...]


def collection_rate(collected_cents: int, expected_cents: int) -> float:
    if expected_cents <= 0:
        return 0.0
    return collected_cents / expected_cents * 100


def _season_totals(enrolled: Sequence[EnrollmentRow]) -> SeasonTotals:
    expected = sum(e.fee_amount_cents for e in enrolled)
    collected = sum(p.amount_cents for e in enrolled for p in e.payments)
    return SeasonTotals(
        enrolled_count=len(enrolled),
        total_expected_cents=expected,
        total_collected_cents=collected,
        total_outstanding_cents=max(0, expected - collected),
        collection_rate=collection_rate(collected, expected),
    )


def build_season_summary_line(season: SeasonRow) -> SeasonSummaryLine:
    """Roll up one season; withdrawn enrollments are left out."""
    enrolled = [
        e for e in season.enrollments if e.status == EnrollmentStatus.enrolled
    ]
    return SeasonSummaryLine(
        season_name=season.name,
        start_date=season.start_date,
        end_date=season.end_date,
        base_fee_cents=season.fee_amount_cents,
        totals=_season_totals(enrolled),
    )


def build_seasons_report_data(
    seasons: Iterable[SeasonRow],
) -> Optional[SeasonsReportData]:
    lines = tuple(build_season_summary_line(season) for season in seasons)
    if not lines:
        return None
    expected = sum(line.totals.total_expected_cents for line in lines)
    collected = sum(line.totals.total_collected_cents for line in lines)
    grand_totals = SeasonTotals(
        enrolled_count=sum(line.totals.enrolled_count for line in lines),
        total_expected_cents=expected,
        total_collected_cents=collected,
        total_outstanding_cents=sum(
            line.totals.total_outstanding_cents for line in lines
        ),
        collection_rate=collection_rate(collected, expected),
    )
    return SeasonsReportData(seasons=lines, grand_totals=grand_totals)


def build_season_enrollment(enrollment: EnrollmentRow) -> SeasonReportEnrollment:
    student = enrollment.student
    payments = tuple(
        SeasonReportPayment(
            id=p.id,
            payment_date=p.payment_date,
            amount_cents=p.amount_cents,
            payment_method=p.payment_method,
            notes=p.notes,
        )
        for p in enrollment.payments
    )
    total_paid = sum(p.amount_cents for p in payments)
    return SeasonReportEnrollment(
        id=enrollment.id,
        student_name=f"{student.last_name}, {student.first_name}",
        guardian_name=student.guardian_name,
        contact_email=student.email or student.guardian_email,
        contact_phone=student.phone or student.guardian_phone,
        fee_amount_cents=enrollment.fee_amount_cents,
        total_paid_cents=total_paid,
        balance_due_cents=enrollment.fee_amount_cents - total_paid,
        payment_status=classify_payment(enrollment.fee_amount_cents, total_paid),
        enrollment_status=EnrollmentStatus(enrollment.status),
        payments=payments,
    )


def build_season_report_data(
    season: SeasonRow,
    *,
    organization_name: str,
    generated_at: Optional[datetime] = None,
) -> SeasonReportData:
    """Roster for a single season, every enrollment included in enrollment order."""
    enrollments = tuple(build_season_enrollment(e) for e in season.enrollments)
    expected = sum(e.fee_amount_cents for e in enrollments)
    collected = sum(e.total_paid_cents for e in enrollments)
    if expected > 0:
        rate = collection_rate(collected, expected)
    else:
        # Free seasons with enrollments count as fully collected.
        rate = 100.0 if enrollments else 0.0
    return SeasonReportData(
        organization_name=organization_name,
        season_name=season.name,
        season_description=season.description,
        start_date=season.start_date,
        end_date=season.end_date,
        fee_amount_cents=season.fee_amount_cents,
        status=SeasonStatus(season.status),
        generated_at=generated_at or datetime.now(),
        summary=SeasonReportSummary(
            total_enrolled=len(enrollments),
            total_fees_expected_cents=expected,
            total_collected_cents=collected,
            total_outstanding_cents=expected - collected,
            collection_rate=rate,
        ),
        enrollments=enrollments,
    )
