"""Tests for client activity and financial reports."""
import csv
import io
import json
from datetime import date
from uuid import UUID

import pytest
from backoffice_core import crud, reporting, schemas
from backoffice_core.errors import ValidationError
from backoffice_core.models import Contract, TimecardStatus


class TestIsoWeek:
    """Test ISO week labels."""

    def test_first_week_of_2024(self):
        """Test that 2024-01-01 (a Monday) is week 1."""
        assert reporting.iso_week(date(2024, 1, 1)) == "2024-W01"

    def test_sunday_belongs_to_previous_year(self):
        """Test that 2023-12-31 belongs to the last week of 2023."""
        assert reporting.iso_week(date(2023, 12, 31)) == "2023-W52"

    def test_late_december_in_next_year(self):
        """Test that 2024-12-30 is the first week of 2025."""
        assert reporting.iso_week(date(2024, 12, 30)) == "2025-W01"


class TestClientActivityReport:
    """Test the client activity report."""

    def test_missing_filters_rejected(self, db):
        """Test that the required filters are checked before querying."""
        with pytest.raises(ValidationError) as exc_info:
            reporting.build_client_activity_report(db, None, date(2024, 1, 1), None)
        assert "clientId" in exc_info.value.message
        assert "endDate" in exc_info.value.message

    def test_inverted_range_rejected(self, db, acme):
        """Test that startDate after endDate is rejected."""
        with pytest.raises(ValidationError):
            reporting.build_client_activity_report(db, acme.id, date(2024, 2, 1), date(2024, 1, 1))

    def test_weekend_lines_excluded(self, db, acme, consultant, add_line):
        """Test that Saturday hours drop out when weekends are excluded."""
        add_line(consultant.id, date(2024, 1, 3), client_id=acme.id,
                 client_facing_hours=3.5, status=TimecardStatus.APPROVED)
        add_line(consultant.id, date(2024, 1, 6), client_id=acme.id,
                 client_facing_hours=2.0, status=TimecardStatus.APPROVED)

        report = reporting.build_client_activity_report(
            db, acme.id, date(2024, 1, 1), date(2024, 1, 7), include_weekends=False
        )

        assert len(report.detail) == 1
        assert report.detail[0].activity_date == date(2024, 1, 3)
        assert [(w.iso_week, w.hours) for w in report.summary.by_week] == [("2024-W01", 3.5)]

        with_weekends = reporting.build_client_activity_report(
            db, acme.id, date(2024, 1, 1), date(2024, 1, 7)
        )
        assert with_weekends.summary.by_week[0].hours == 5.5

    def test_approved_only_filter(self, db, acme, consultant, add_line):
        """Test that Submitted lines are only counted when approvedOnly is off."""
        add_line(consultant.id, date(2024, 1, 3), client_id=acme.id,
                 client_facing_hours=4, status=TimecardStatus.APPROVED)
        add_line(consultant.id, date(2024, 1, 4), client_id=acme.id,
                 client_facing_hours=1, status=TimecardStatus.SUBMITTED)
        add_line(consultant.id, date(2024, 1, 5), client_id=acme.id,
                 client_facing_hours=9, status=TimecardStatus.OPEN)

        approved = reporting.build_client_activity_report(db, acme.id, date(2024, 1, 1), date(2024, 1, 31))
        assert approved.summary.by_category[0].hours == 4.0

        submitted = reporting.build_client_activity_report(
            db, acme.id, date(2024, 1, 1), date(2024, 1, 31), approved_only=False
        )
        assert submitted.summary.by_category[0].hours == 5.0
        assert len(submitted.detail) == 2

    def test_row_shape(self, db, acme, consultant, add_line):
        """Test person, role, project fallback and category on detail rows."""
        add_line(consultant.id, date(2024, 1, 3), client_id=acme.id, project_task="Close",
                 non_client_facing_hours=1.25, status=TimecardStatus.APPROVED, notes="memo")

        report = reporting.build_client_activity_report(db, acme.id, date(2024, 1, 1), date(2024, 1, 31))
        row = report.detail[0]
        assert row.person == "Alice Rivera"
        assert row.role == "Controller"
        assert row.project == "Time Entry"
        assert row.task == "Close"
        assert row.category == reporting.UNCATEGORIZED
        assert row.notes is None
        assert report.summary.by_month[0].month == "2024-01"
        assert report.summary.by_person[0].person == "Alice Rivera"

    def test_notes_included_on_request(self, db, acme, consultant, add_line):
        """Test that notes appear only when includeNotes is set."""
        add_line(consultant.id, date(2024, 1, 3), client_id=acme.id,
                 client_facing_hours=1, status=TimecardStatus.APPROVED, notes="memo")
        report = reporting.build_client_activity_report(
            db, acme.id, date(2024, 1, 1), date(2024, 1, 31), include_notes=True
        )
        assert report.detail[0].notes == "memo"

    def test_missing_job_title_uses_placeholder(self, db, acme, add_line):
        """Test the role placeholder for consultants without a title."""
        untitled = crud.create_consultant(db, schemas.ConsultantCreate(first_name="Bo", last_name="Chen"))
        add_line(untitled.id, date(2024, 1, 3), client_id=acme.id,
                 client_facing_hours=1, status=TimecardStatus.APPROVED)
        report = reporting.build_client_activity_report(db, acme.id, date(2024, 1, 1), date(2024, 1, 31))
        assert report.detail[0].role == reporting.NO_ROLE


class TestActivityCsv:
    """Test CSV export of report detail."""

    def _row(self, **overrides):
        fields = dict(
            activity_date=date(2024, 1, 3),
            consultant_id="6f1f5a3e-4b0c-4b8e-9d65-3f3f0a0d2b11",
            person="Alice Rivera",
            role="Controller",
            project="Time Entry",
            task="Close",
            category="Uncategorized",
            hours=3.5,
        )
        fields.update(overrides)
        return schemas.ActivityDetailRow(**fields)

    def test_header_and_quoting(self):
        """Test a bare header and date, quoted text and bare hours."""
        content = reporting.export_activity_csv([self._row()])
        lines = content.splitlines()
        assert lines[0] == 'Date,Person,Role,Project,Task,Category,Hours'
        assert lines[1] == '2024-01-03,"Alice Rivera","Controller","Time Entry","Close","Uncategorized",3.5'

    def test_embedded_quotes_and_commas(self):
        """Test that embedded quotes are doubled and the file re-parses."""
        content = reporting.export_activity_csv(
            [self._row(notes='He said, "ok"')], include_notes=True
        )
        assert '"He said, ""ok"""' in content

        parsed = list(csv.reader(io.StringIO(content)))
        assert parsed[0][-1] == "Notes"
        assert parsed[1][-1] == 'He said, "ok"'
        assert parsed[1][6] == "3.5"

    def test_filename(self):
        """Test the download name."""
        client_id = UUID("6f1f5a3e-4b0c-4b8e-9d65-3f3f0a0d2b11")
        name = reporting.activity_csv_filename(client_id, date(2024, 1, 1), date(2024, 1, 31))
        assert name == f"client_activity_{client_id}_2024-01-01_2024-01-31.csv"


class TestContractMath:
    """Test contract validity and remaining-month math."""

    def test_to_float(self):
        """Test lenient number parsing."""
        assert reporting.to_float("12.5") == 12.5
        assert reporting.to_float("") == 0.0
        assert reporting.to_float("n/a") == 0.0
        assert reporting.to_float(None) == 0.0

    def test_normalize_name(self):
        """Test whitespace and case normalization."""
        assert reporting.normalize_name("  Alice   RIVERA ") == "alice rivera"

    def test_inactive_client_invalid(self):
        """Test that inactive clients drop out."""
        assert not reporting.is_contract_valid(Contract(), False, None, None)

    def test_contract_started_after_range(self):
        """Test that contracts starting after the range are excluded."""
        contract = Contract(contract_start_date=date(2024, 6, 1))
        assert not reporting.is_contract_valid(contract, True, date(2024, 1, 1), date(2024, 3, 31))

    def test_contract_ended_before_range(self):
        """Test that finished contracts ending before the range are excluded."""
        contract = Contract(
            contract_start_date=date(2023, 1, 1),
            contract_end_date=date(2023, 12, 31),
            contract_end_reason="Completed",
        )
        assert not reporting.is_contract_valid(contract, True, date(2024, 1, 1), date(2024, 3, 31))

    def test_end_date_without_reason_still_valid(self):
        """Test that an end date alone does not end a contract."""
        contract = Contract(contract_start_date=date(2023, 1, 1), contract_end_date=date(2023, 12, 31))
        assert reporting.is_contract_valid(contract, True, date(2024, 1, 1), date(2024, 3, 31))

    def test_months_remaining_to_end_date(self):
        """Test remaining months counted in 30-day months to the end date."""
        contract = Contract(contract_start_date=date(2024, 1, 1), contract_end_date=date(2024, 4, 1))
        assert reporting.months_remaining(contract, 3, date(2024, 1, 1)) == 4

    def test_months_remaining_from_length(self):
        """Test remaining months derived from length and elapsed time."""
        contract = Contract(contract_start_date=date(2024, 1, 1))
        assert reporting.months_remaining(contract, 12, date(2024, 3, 1)) == 10

    def test_months_remaining_zero_when_ended(self):
        """Test that ended contracts have nothing left."""
        contract = Contract(contract_end_reason="Churned", contract_end_date=date(2030, 1, 1))
        assert reporting.months_remaining(contract, 12, date(2024, 1, 1)) == 0

    def test_stored_length_wins(self):
        """Test that an explicit contract length is used as is."""
        contract = Contract(contract_length=6, contract_start_date=date(2020, 1, 1))
        assert reporting.contract_length_months(contract, date(2024, 1, 1)) == 6

    def test_derived_length_for_running_contract(self):
        """Test length measured to today for a running contract."""
        contract = Contract(contract_start_date=date(2024, 1, 1))
        assert reporting.contract_length_months(contract, date(2024, 3, 1)) == 2


class TestFinancialData:
    """Test financial line items."""

    def test_staff_expanded_and_matched(self, db, acme, consultant, add_line):
        """Test one line item per staff slot with consultant pay data and approved hours."""
        crud.create_contract(db, schemas.ContractCreate(
            client_id=acme.id,
            contract_type="Monthly",
            contract_start_date=date(2024, 1, 1),
            monthly_fee=5000,
            assigned_controller="alice  rivera",
            assigned_controller_rate=125,
            assigned_software="Ledger Pro",
            assigned_software_rate=40,
            assigned_software_quantity=3,
            additional_staff=json.dumps([{"name": "Dana Wu", "role": "Analyst", "rate": "80"}]),
        ))
        add_line(consultant.id, date(2024, 1, 3), client_id=acme.id, client_facing_hours=3,
                 non_client_facing_hours=1, other_task_hours=5, status=TimecardStatus.APPROVED)
        add_line(consultant.id, date(2024, 1, 4), client_id=acme.id, client_facing_hours=8,
                 status=TimecardStatus.SUBMITTED)

        items = reporting.get_financial_data(
            db, date(2024, 1, 1), date(2024, 1, 31), today=date(2024, 2, 1)
        )
        assert [i.role for i in items] == ["Controller", "Software", "Analyst"]
        assert all(i.line_item_count == 3 for i in items)

        controller = items[0]
        assert controller.consultant_id == consultant.id
        assert controller.client_rate == 125
        assert controller.pay_rate == 55.0
        # Client-facing plus non-client-facing approved hours only
        assert controller.total_hours == 4.0
        assert controller.contract_type == "Monthly"

        software = items[1]
        assert software.quantity == 3
        assert software.consultant_id is None

        analyst = items[2]
        assert analyst.client_rate == 80.0

    def test_default_contract_type(self, db, acme):
        """Test that a contract without a type is reported as Project."""
        crud.create_contract(db, schemas.ContractCreate(client_id=acme.id, assigned_cfo="Pat Lee"))
        items = reporting.get_financial_data(db, today=date(2024, 1, 1))
        assert items[0].contract_type == "Project"
        assert items[0].role == "CFO"

    def test_inactive_client_excluded(self, db):
        """Test that contracts of inactive clients are skipped."""
        dormant = crud.create_client(db, schemas.ClientCreate(client_name="Dormant", active_status=False))
        crud.create_contract(db, schemas.ContractCreate(client_id=dormant.id, assigned_cfo="Pat Lee"))
        assert reporting.get_financial_data(db, today=date(2024, 1, 1)) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
