from datetime import date, timedelta
from decimal import Decimal

import pytest

from errors import ErrorKind
from recurrence import (
    Frequency,
    RecurringExpenseTemplate,
    TemplateStatus,
    advance_due_date,
    compute_next_due_date,
    derive_status,
    duplicate_template,
    filter_templates_by_status,
    is_due,
    refresh_next_due_date,
    sort_templates,
    toggle_active,
    validate_template,
)

MEMBERS = ["alice", "bob"]
TODAY = date(2026, 10, 18)


def make_template(**overrides):
    fields = {
        "template_id": "R001",
        "property_id": "P1",
        "description": "Water bill",
        "amount": Decimal("120.00"),
        "split_method": "equal",
        "payer_id": "alice",
        "frequency": "monthly",
        "start_date": date(2026, 1, 31),
        "next_due_date": date(2026, 10, 31),
    }
    fields.update(overrides)
    return RecurringExpenseTemplate(**fields)


class TestComputeNextDueDate:
    def test_monthly_clamps_to_end_of_february(self):
        assert compute_next_due_date("2023-01-31", "monthly", 1, "2023-02-01") == date(2023, 2, 28)
        assert compute_next_due_date("2024-01-31", "monthly", 1, "2024-02-01") == date(2024, 2, 29)

    def test_monthly_does_not_drift_after_short_month(self):
        assert compute_next_due_date(date(2023, 1, 31), "monthly", 1, date(2023, 3, 1)) == date(2023, 3, 31)

    def test_reference_on_or_before_start_returns_start(self):
        start = date(2026, 5, 10)
        assert compute_next_due_date(start, "weekly", 1, date(2026, 1, 1)) == start
        assert compute_next_due_date(start, "weekly", 1, start) == start

    def test_reference_on_an_occurrence_returns_it(self):
        assert compute_next_due_date("2024-01-01", "daily", 1, "2024-01-05") == date(2024, 1, 5)

    def test_weekly_with_interval(self):
        assert compute_next_due_date("2024-01-01", "weekly", 2, "2024-01-10") == date(2024, 1, 15)

    def test_quarterly(self):
        assert compute_next_due_date("2024-01-15", "quarterly", 1, "2024-05-01") == date(2024, 7, 15)

    def test_biannually(self):
        assert compute_next_due_date("2024-03-31", "biannually", 1, "2024-04-01") == date(2024, 9, 30)

    def test_yearly_from_leap_day(self):
        assert compute_next_due_date("2024-02-29", "annually", 1, "2025-01-01") == date(2025, 2, 28)

    def test_interval_below_one_is_rejected(self):
        with pytest.raises(ValueError):
            compute_next_due_date("2024-01-01", "monthly", 0, "2024-02-01")

    def test_unknown_frequency_is_rejected(self):
        with pytest.raises(ValueError):
            compute_next_due_date("2024-01-01", "fortnightly", 1, "2024-02-01")

    @pytest.mark.parametrize("frequency", list(Frequency))
    def test_monotonic_and_never_before_reference(self, frequency):
        start = date(2024, 1, 31)
        previous = start
        for offset in range(0, 400, 3):
            reference = start + timedelta(days=offset)
            due = compute_next_due_date(start, frequency, 1, reference)
            assert due >= reference
            assert due >= previous
            assert compute_next_due_date(start, frequency, 1, reference) == due
            previous = due


class TestStatus:
    def test_ended_wins_over_active_flag(self):
        template = make_template(end_date=date(2026, 10, 17), is_active=True)
        assert derive_status(template, TODAY) is TemplateStatus.ENDED

    def test_end_date_today_is_still_active(self):
        assert derive_status(make_template(end_date=TODAY), TODAY) is TemplateStatus.ACTIVE

    def test_paused(self):
        assert derive_status(make_template(is_active=False), TODAY) is TemplateStatus.PAUSED

    def test_status_is_not_stored(self):
        assert "status" not in make_template().to_dict()

    def test_split_details_are_stored_as_plain_numbers(self):
        template = make_template(
            split_method="percentage",
            split_details={
                "type": "percentage",
                "splits": {"alice": Decimal("33.3333333333333333"), "bob": Decimal("66.6666666666666667")},
            },
        )
        stored = template.to_dict()["split_details"]
        assert stored["splits"] == {"alice": 33.3333333333333333, "bob": 66.6666666666666667}
        assert all(type(value) is float for value in stored["splits"].values())


class TestToggle:
    def test_pausing_keeps_dates(self):
        template = make_template()
        result = toggle_active(template, False, TODAY)

        assert result.ok
        paused = result.value
        assert paused.is_active is False
        assert (paused.start_date, paused.end_date, paused.next_due_date) == (
            template.start_date, template.end_date, template.next_due_date
        )
        assert template.is_active is True

    def test_ended_template_cannot_be_toggled(self):
        template = make_template(end_date=date(2026, 6, 30), is_active=False)
        result = toggle_active(template, True, TODAY)

        assert not result.ok
        assert result.error.kind is ErrorKind.TEMPLATE_ENDED
        assert template.is_active is False


class TestDuplicate:
    def test_duplicate_is_fresh_and_open_ended(self):
        source = make_template(end_date=date(2026, 6, 30), is_active=False)
        duplicate = duplicate_template(source, TODAY)

        assert duplicate.template_id is None
        assert duplicate.start_date == TODAY
        assert duplicate.end_date is None
        assert duplicate.is_active is True
        assert duplicate.next_due_date == TODAY
        assert (duplicate.description, duplicate.amount, duplicate.frequency) == (
            source.description, source.amount, source.frequency
        )
        assert source.template_id == "R001"

    def test_duplicate_with_end_date(self):
        duplicate = duplicate_template(make_template(), TODAY, end_date="2027-12-31")
        assert duplicate.end_date == date(2027, 12, 31)


class TestAdvance:
    def test_advance_moves_to_following_occurrence(self):
        template = make_template(start_date=date(2024, 1, 31), next_due_date=date(2024, 1, 31))
        advanced = advance_due_date(template)
        assert advanced.next_due_date == date(2024, 2, 29)
        assert advanced.is_active is True

    def test_advance_past_end_date_deactivates(self):
        template = make_template(
            start_date=date(2024, 1, 31), next_due_date=date(2024, 1, 31), end_date=date(2024, 2, 15)
        )
        assert advance_due_date(template).is_active is False

    def test_refresh_recomputes_from_start(self):
        template = make_template(next_due_date=None)
        assert refresh_next_due_date(template, TODAY).next_due_date == date(2026, 10, 31)


class TestIsDue:
    def test_due_when_next_due_date_reached(self):
        assert is_due(make_template(next_due_date=TODAY), TODAY)
        assert not is_due(make_template(next_due_date=TODAY + timedelta(days=1)), TODAY)

    def test_paused_template_is_never_due(self):
        assert not is_due(make_template(next_due_date=TODAY, is_active=False), TODAY)


class TestValidateTemplate:
    def test_valid_equal_template(self):
        assert validate_template(make_template(), MEMBERS).is_valid

    def test_payer_must_be_member(self):
        result = validate_template(make_template(payer_id="dave"), MEMBERS)
        assert result.kinds == [ErrorKind.PAYER_NOT_FOUND]

    def test_interval_and_dates(self):
        template = make_template(interval=0, end_date=date(2025, 12, 31))
        result = validate_template(template, MEMBERS)
        assert result.kinds == [ErrorKind.INVALID_INTERVAL, ErrorKind.INVALID_DATE_RANGE]

    def test_amount_must_be_positive(self):
        result = validate_template(make_template(amount=0), MEMBERS)
        assert result.kinds == [ErrorKind.INVALID_AMOUNT]

    def test_out_of_range_amount(self):
        result = validate_template(make_template(amount="1e30"), MEMBERS)
        assert result.kinds == [ErrorKind.INVALID_AMOUNT]

    def test_split_details_are_validated(self):
        template = make_template(
            split_method="percentage",
            split_details={"type": "percentage", "splits": {"alice": 50, "bob": 40}},
        )
        assert validate_template(template, MEMBERS).kinds == [ErrorKind.INVALID_SPLIT_TOTAL]

    def test_explicit_split_input_overrides_stored_details(self):
        template = make_template(split_method="fixed", split_details={"type": "fixed"})
        result = validate_template(template, MEMBERS, {"alice": 100, "bob": 20})
        assert result.is_valid


class TestListing:
    def setup_method(self):
        self.active = make_template(template_id="R001", description="water", amount=50, next_due_date=date(2026, 11, 1))
        self.paused = make_template(template_id="R002", description="Gas", amount=80, is_active=False,
                                    next_due_date=date(2026, 10, 20))
        self.ended = make_template(template_id="R003", description="insurance", amount=300,
                                   end_date=date(2026, 9, 30), next_due_date=None)
        self.templates = [self.ended, self.active, self.paused]

    def ids(self, templates):
        return [t.template_id for t in templates]

    def test_sort_by_next_due_date_puts_missing_last(self):
        assert self.ids(sort_templates(self.templates, TODAY)) == ["R002", "R001", "R003"]

    def test_sort_by_status(self):
        assert self.ids(sort_templates(self.templates, TODAY, "status")) == ["R001", "R002", "R003"]

    def test_sort_by_amount_descending(self):
        assert self.ids(sort_templates(self.templates, TODAY, "amount", descending=True)) == ["R003", "R002", "R001"]

    def test_sort_by_description_ignores_case(self):
        assert self.ids(sort_templates(self.templates, TODAY, "description")) == ["R002", "R003", "R001"]

    def test_unknown_sort_key(self):
        with pytest.raises(ValueError):
            sort_templates(self.templates, TODAY, "payer")

    @pytest.mark.parametrize("status, expected", [
        ("all", ["R003", "R001", "R002"]),
        ("active", ["R001"]),
        ("paused", ["R002"]),
        ("ended", ["R003"]),
    ])
    def test_filter_by_status(self, status, expected):
        assert self.ids(filter_templates_by_status(self.templates, status, TODAY)) == expected
