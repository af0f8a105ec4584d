"""Unit tests for domain models and the category catalog."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from notification_engine.domain import CATALOG, build_catalog, get_category
from notification_engine.domain.models import (
    Cadence,
    Channel,
    DeliveryRecord,
    InstitutionNotificationSetting,
    NotificationCategory,
    Recipient,
    Schedule,
)


class TestCatalog:
    """Tests for the static category catalog."""

    def test_catalog_has_all_categories(self):
        assert len(CATALOG) == 16
        assert {"birthday", "attendance_absent", "fee_reminder", "route_change"} <= set(CATALOG)

    def test_catalog_is_read_only(self):
        with pytest.raises(TypeError):
            CATALOG["new"] = CATALOG["birthday"]

    def test_category_defaults(self):
        absent = get_category("attendance_absent")
        assert absent.label == "Absence Alert"
        assert absent.default_channels == (Channel.SMS, Channel.IN_APP)
        assert absent.cadence == Cadence.REALTIME
        assert "{student_name}" in absent.default_template

    def test_unknown_category_returns_none(self):
        assert get_category("nonexistent") is None

    def test_every_category_has_channels_and_template(self):
        for category in CATALOG.values():
            assert category.default_channels
            assert category.default_template.strip()

    def test_build_catalog_rejects_duplicates(self):
        category = CATALOG["birthday"]
        with pytest.raises(ValueError, match="Duplicate"):
            build_catalog([category, category])

    def test_categories_are_frozen(self):
        with pytest.raises(ValidationError):
            CATALOG["birthday"].label = "Changed"


class TestSchedule:
    def test_defaults_to_weekday_mornings(self):
        schedule = Schedule()
        assert schedule.time_of_day == "09:00"
        assert schedule.days_of_week == (1, 2, 3, 4, 5)

    def test_days_are_sorted_and_deduplicated(self):
        assert Schedule(days_of_week=(5, 1, 5)).days_of_week == (1, 5)

    @pytest.mark.parametrize("days", [(0,), (8,), (1, 9)])
    def test_invalid_days_rejected(self, days):
        with pytest.raises(ValidationError):
            Schedule(days_of_week=days)

    def test_invalid_time_rejected(self):
        with pytest.raises(ValidationError):
            Schedule(time_of_day="25:00")


class TestInstitutionNotificationSetting:
    def test_blank_custom_template_means_no_override(self):
        setting = InstitutionNotificationSetting(
            institution_id="I1", category_id="birthday", custom_template="   "
        )
        assert setting.custom_template is None

    def test_all_fields_optional(self):
        setting = InstitutionNotificationSetting(institution_id="I1", category_id="birthday")
        assert setting.is_enabled is None
        assert setting.channels is None


class TestRecipient:
    """Tests for Recipient addressing and opt-in rules."""

    def test_address_per_channel(self):
        recipient = Recipient(
            id="G1", display_name="Jane Doe", phone="0700000001", email="j@x.com", portal_user_id="user-1"
        )
        assert recipient.address_for(Channel.SMS) == "0700000001"
        assert recipient.address_for(Channel.EMAIL) == "j@x.com"
        assert recipient.address_for(Channel.IN_APP) == "G1"

    def test_in_app_needs_portal_account(self):
        recipient = Recipient(id="G1", phone="0700000001", portal_user_id=" ")
        assert not recipient.has_portal_access
        assert recipient.address_for(Channel.IN_APP) is None
        assert recipient.address_for(Channel.SMS) == "0700000001"

    def test_blank_addresses_are_absent(self):
        recipient = Recipient(id="G1", phone="  ", email="")
        assert recipient.address_for(Channel.SMS) is None
        assert recipient.address_for(Channel.EMAIL) is None

    def test_opted_in_by_default(self):
        recipient = Recipient(id="G1")
        assert all(recipient.is_opted_in(channel) for channel in Channel)

    def test_opt_out_is_per_channel(self):
        recipient = Recipient(id="G1", opted_out=frozenset({Channel.SMS}))
        assert not recipient.is_opted_in(Channel.SMS)
        assert recipient.is_opted_in(Channel.IN_APP)

    def test_first_name(self):
        assert Recipient(id="G1", display_name="Jane Wanjiru").first_name == "Jane"
        assert Recipient(id="G1").first_name == ""


class TestDeliveryRecord:
    def test_requires_at_least_one_channel(self):
        with pytest.raises(ValidationError):
            DeliveryRecord(
                event_type="birthday",
                reference_id="s1",
                recipient_id="G1",
                institution_id="I1",
                channels_used=[],
                message="Hi",
                processed_at=datetime.now(timezone.utc),
            )

    def test_processed_at_converted_to_utc(self):
        nairobi = timezone(timedelta(hours=3))
        record = DeliveryRecord(
            event_type="birthday",
            reference_id="s1",
            recipient_id="G1",
            institution_id="I1",
            channels_used=[Channel.SMS],
            message="Hi",
            processed_at=datetime(2024, 5, 6, 9, 0, tzinfo=nairobi),
        )
        assert record.processed_at == datetime(2024, 5, 6, 6, 0, tzinfo=timezone.utc)
