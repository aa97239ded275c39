"""
测试 staybook.hotel.domain.booking - Booking 领域实体与仓储
"""
import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from staybook.hotel.domain.booking import BookingEntity, BookingRepository
from staybook.hotel.domain.errors import InvalidTransition, NotCancellable
from staybook.hotel.domain.rules.booking_rules import compute_pricing
from staybook.models.ontology import (
    Booking, BookingStatus, PaymentMethod, PaymentStatus, RefundStatus
)

from factories import NOW

CHECK_IN = datetime(2024, 1, 1)
CHECK_OUT = datetime(2024, 1, 3)


@pytest.fixture
def booking_factory(db_session, sample_user, sample_room):
    counter = {"n": 0}

    def create(status=BookingStatus.PENDING, check_in=CHECK_IN, check_out=CHECK_OUT, total=None):
        counter["n"] += 1
        pricing = compute_pricing(sample_room.price_per_night, check_in, check_out)
        booking = Booking(
            booking_number=f"BK2023{counter['n']:06d}",
            user_id=sample_user.id,
            room_id=sample_room.id,
            check_in=check_in,
            check_out=check_out,
            adults=2,
            children=0,
            guest_details={"primary_guest": {"first_name": "Alice"}},
            room_rate=pricing.room_rate,
            nights=pricing.nights,
            subtotal=pricing.subtotal,
            taxes=pricing.taxes,
            discount_amount=Decimal("0"),
            total_amount=total if total is not None else pricing.total,
            payment_method=PaymentMethod.CREDIT_CARD,
            status=status,
        )
        db_session.add(booking)
        db_session.commit()
        db_session.refresh(booking)
        return booking

    return create


def _entity(booking):
    return BookingEntity(booking, clock=lambda: NOW)


class TestBookingEntity:
    def test_properties(self, booking_factory):
        entity = _entity(booking_factory())
        assert entity.status == "pending"
        assert entity.total_guests == 2
        assert entity.pricing.nights == 2
        assert entity.total_amount == Decimal("2360.00")
        assert entity.is_blocking() is False

    def test_confirmed_blocks_room(self, booking_factory):
        assert _entity(booking_factory(BookingStatus.CONFIRMED)).is_blocking() is True
        assert _entity(booking_factory(BookingStatus.CHECKED_IN)).is_blocking() is True

    def test_confirm_payment(self, booking_factory):
        entity = _entity(booking_factory())
        entity.confirm_payment(PaymentStatus.COMPLETED, transaction_id="TX1", now=NOW)
        assert entity.status == "confirmed"
        assert entity.model.status == BookingStatus.CONFIRMED
        assert entity.model.payment_status == PaymentStatus.COMPLETED
        assert entity.model.transaction_id == "TX1"
        assert entity.model.paid_amount == Decimal("2360.00")
        assert entity.model.payment_date == NOW

    def test_zero_paid_amount_records_total(self, booking_factory):
        entity = _entity(booking_factory())
        entity.confirm_payment(PaymentStatus.COMPLETED, paid_amount=Decimal("0"), now=NOW)
        assert entity.model.paid_amount == Decimal("2360.00")

    def test_explicit_paid_amount(self, booking_factory):
        entity = _entity(booking_factory())
        entity.confirm_payment(PaymentStatus.COMPLETED, paid_amount=Decimal("2000"), now=NOW)
        assert entity.model.paid_amount == Decimal("2000.00")

    def test_payment_failed_cancels(self, booking_factory):
        entity = _entity(booking_factory())
        entity.confirm_payment(PaymentStatus.FAILED, now=NOW)
        assert entity.status == "cancelled"
        assert entity.model.payment_status == PaymentStatus.FAILED
        assert entity.model.is_cancelled is True
        assert entity.model.refund_status == RefundStatus.NOT_APPLICABLE

    def test_confirm_payment_twice_rejected(self, booking_factory):
        entity = _entity(booking_factory(BookingStatus.CONFIRMED))
        with pytest.raises(InvalidTransition):
            entity.confirm_payment(PaymentStatus.COMPLETED, now=NOW)

    def test_pending_cannot_check_in(self, booking_factory):
        entity = _entity(booking_factory())
        with pytest.raises(InvalidTransition):
            entity.check_in_guest(now=NOW)
        assert entity.status == "pending"

    def test_check_in_and_out(self, booking_factory):
        entity = _entity(booking_factory(BookingStatus.CONFIRMED))
        entity.check_in_guest(now=NOW)
        assert entity.status == "checked-in"
        assert entity.model.check_in_time == NOW

        entity.check_out_guest(now=NOW + timedelta(days=2))
        assert entity.status == "checked-out"
        assert entity.model.check_out_time == NOW + timedelta(days=2)
        assert entity.is_terminal() is True
        assert [h.trigger for h in entity.history] == ["check_in", "check_out"]

    def test_check_out_requires_check_in(self, booking_factory):
        entity = _entity(booking_factory(BookingStatus.CONFIRMED))
        with pytest.raises(InvalidTransition):
            entity.check_out_guest(now=NOW)


class TestCancellation:
    def test_full_refund(self, booking_factory):
        check_in = NOW + timedelta(hours=80)
        entity = _entity(booking_factory(BookingStatus.CONFIRMED, check_in, check_in + timedelta(days=1)))
        entity.model.payment_status = PaymentStatus.COMPLETED

        refund, refund_status = entity.cancel(actor_id=entity.user_id, reason="Plans changed", now=NOW)

        assert refund == entity.total_amount
        assert refund_status == RefundStatus.FULL
        assert entity.status == "cancelled"
        m = entity.model
        assert m.is_cancelled is True
        assert m.cancelled_by == entity.user_id
        assert m.cancellation_reason == "Plans changed"
        assert m.refund_amount == refund
        assert m.refund_date == NOW
        assert m.payment_status == PaymentStatus.REFUNDED

    def test_partial_refund(self, booking_factory):
        check_in = NOW + timedelta(hours=48)
        entity = _entity(booking_factory(BookingStatus.CONFIRMED, check_in, check_in + timedelta(days=1),
                                         total=Decimal("1000.00")))
        entity.model.payment_status = PaymentStatus.COMPLETED

        assert entity.calculate_refund(NOW) == Decimal("500.00")
        refund, refund_status = entity.cancel(actor_id=1, now=NOW)
        assert refund == Decimal("500.00")
        assert refund_status == RefundStatus.PARTIAL
        assert entity.model.payment_status == PaymentStatus.PARTIALLY_REFUNDED

    def test_within_deadline_not_cancellable(self, booking_factory):
        check_in = NOW + timedelta(hours=10)
        entity = _entity(booking_factory(BookingStatus.CONFIRMED, check_in, check_in + timedelta(days=1)))
        assert entity.can_be_cancelled(NOW) is False
        assert entity.calculate_refund(NOW) == Decimal("0.00")
        with pytest.raises(NotCancellable):
            entity.cancel(actor_id=1, now=NOW)
        assert entity.status == "confirmed"

    def test_cancel_twice(self, booking_factory):
        entity = _entity(booking_factory())
        entity.cancel(actor_id=1, now=NOW)
        cancelled_at = entity.model.cancelled_at
        with pytest.raises(NotCancellable):
            entity.cancel(actor_id=1, now=NOW + timedelta(hours=1))
        assert entity.status == "cancelled"
        assert entity.model.cancelled_at == cancelled_at

    def test_pending_cancel_keeps_pending_payment(self, booking_factory):
        entity = _entity(booking_factory())
        entity.cancel(actor_id=1, now=NOW)
        assert entity.model.payment_status == PaymentStatus.PENDING

    def test_checked_out_not_cancellable(self, booking_factory):
        entity = _entity(booking_factory(BookingStatus.CHECKED_OUT))
        assert entity.can_be_cancelled(NOW) is False


class TestModification:
    def test_modify_pending(self, booking_factory, sample_room):
        entity = _entity(booking_factory())
        new_out = CHECK_OUT + timedelta(days=1)
        pricing = compute_pricing(sample_room.price_per_night, CHECK_IN, new_out)
        entity.modify(check_out=new_out, pricing=pricing, notes={"customer_notes": "late arrival"})
        assert entity.status == "pending"
        assert entity.check_out == new_out
        assert entity.pricing.nights == 3
        assert entity.total_amount == Decimal("3540.00")
        assert entity.model.notes == {"customer_notes": "late arrival"}

    @pytest.mark.parametrize("status", [
        BookingStatus.CHECKED_IN, BookingStatus.CHECKED_OUT,
        BookingStatus.CANCELLED, BookingStatus.NO_SHOW,
    ])
    def test_locked_states_not_modifiable(self, booking_factory, status):
        entity = _entity(booking_factory(status))
        assert entity.can_modify() is False
        with pytest.raises(InvalidTransition):
            entity.modify(adults=1)


class TestBookingRepository:
    def test_get_by_id_and_number(self, db_session, booking_factory):
        booking = booking_factory()
        repo = BookingRepository(db_session)
        assert repo.get_by_id(booking.id).booking_number == booking.booking_number
        assert repo.get_by_number(booking.booking_number).id == booking.id
        assert repo.get_by_id(9999) is None

    def test_find_overlapping_only_blocking(self, db_session, booking_factory, sample_room):
        booking_factory(BookingStatus.PENDING)
        booking_factory(BookingStatus.CANCELLED)
        repo = BookingRepository(db_session)
        assert repo.find_overlapping(sample_room.id, CHECK_IN, CHECK_OUT) == []

        confirmed = booking_factory(BookingStatus.CONFIRMED)
        found = repo.find_overlapping(sample_room.id, datetime(2024, 1, 2), datetime(2024, 1, 4))
        assert [b.id for b in found] == [confirmed.id]

    def test_find_overlapping_excludes_self_and_adjacent(self, db_session, booking_factory, sample_room):
        confirmed = booking_factory(BookingStatus.CONFIRMED)
        repo = BookingRepository(db_session)
        assert repo.has_overlap(sample_room.id, CHECK_IN, CHECK_OUT, exclude_booking_id=confirmed.id) is False
        assert repo.has_overlap(sample_room.id, CHECK_OUT, CHECK_OUT + timedelta(days=2)) is False

    def test_blocked_room_ids(self, db_session, booking_factory, sample_room):
        booking_factory(BookingStatus.CHECKED_IN)
        repo = BookingRepository(db_session)
        assert repo.blocked_room_ids(CHECK_IN, CHECK_OUT) == {sample_room.id}
        assert repo.blocked_room_ids(CHECK_OUT, CHECK_OUT + timedelta(days=1)) == set()

    def test_find_by_user_paginates(self, db_session, booking_factory, sample_user):
        for _ in range(3):
            booking_factory()
        booking_factory(BookingStatus.CONFIRMED)
        repo = BookingRepository(db_session)

        items, total = repo.find_by_user(sample_user.id, page=1, limit=2)
        assert total == 4
        assert len(items) == 2

        items, total = repo.find_by_user(sample_user.id, status=BookingStatus.CONFIRMED)
        assert total == 1
        assert items[0].status == "confirmed"

    def test_search_by_keyword(self, db_session, booking_factory):
        booking = booking_factory()
        repo = BookingRepository(db_session)
        items, total = repo.search(keyword="Alice")
        assert total == 1
        items, total = repo.search(keyword="101")
        assert total == 1
        items, total = repo.search(keyword=booking.booking_number)
        assert items[0].id == booking.id
        items, total = repo.search(keyword="nobody")
        assert total == 0
