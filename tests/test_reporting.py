import datetime

import pytest

from tourbook import bookings, models, reporting, request_lifecycle, schemas
from tourbook.exceptions import ForbiddenError, InvalidInputError, NotFoundError

Status = models.RequestStatus


@pytest.mark.parametrize(
    "page, limit, expected",
    [
        (None, None, (1, 10, 0)),
        (1, 0, (1, 10, 0)),
        (0, 1000, (1, 50, 0)),
        (-3, 5, (1, 5, 0)),
        (3, 20, (3, 20, 40)),
        (2, -5, (2, 1, 1)),
    ],
)
def test_normalize_pagination(page, limit, expected):
    assert reporting.normalize_pagination(page, limit) == expected


def test_user_sees_only_own_requests_newest_first(db_session, user, other_user, make_request, as_actor):
    first = make_request(user, destination="Kyoto")
    second = make_request(user, destination="Lisbon")
    make_request(other_user, destination="Cairo")

    page = reporting.list_user_requests(db_session, as_actor(user))

    assert [r.id for r in page.items] == [second.id, first.id]
    assert page.pagination.total == 2
    assert page.pagination.total_pages == 1


def test_total_counts_the_filtered_set(db_session, user, guide, make_request, as_actor):
    for _ in range(3):
        make_request(user)
    make_request(user, status=Status.ASSIGNED, guide=guide)

    page = reporting.list_user_requests(db_session, as_actor(user), status="pending", page=2, limit=2)

    assert len(page.items) == 1
    assert page.pagination.total == 3
    assert page.pagination.total_pages == 2
    assert page.pagination.page == 2


def test_unknown_status_filter_is_rejected(db_session, user, as_actor):
    with pytest.raises(InvalidInputError):
        reporting.list_user_requests(db_session, as_actor(user), status="lost")


def test_guide_sees_assigned_requests_oldest_first(db_session, user, guide, other_guide, make_request, as_actor):
    first = make_request(user, status=Status.ASSIGNED, guide=guide)
    second = make_request(user, status=Status.IN_PROGRESS, guide=guide)
    make_request(user, status=Status.ASSIGNED, guide=other_guide)

    page = reporting.list_guide_requests(db_session, as_actor(guide))

    assert [r.id for r in page.items] == [first.id, second.id]


def test_guide_cannot_read_unassigned_request(db_session, user, guide, other_guide, make_request, as_actor):
    db_request = make_request(user, status=Status.ASSIGNED, guide=other_guide)

    with pytest.raises(NotFoundError):
        reporting.get_guide_request(db_session, as_actor(guide), db_request.id)


def test_user_cannot_read_someone_elses_request(db_session, user, other_user, make_request, as_actor):
    db_request = make_request(other_user)

    with pytest.raises(NotFoundError):
        reporting.get_user_request(db_session, as_actor(user), db_request.id)


def test_admin_filters_by_destination(db_session, user, admin, make_request, as_actor):
    make_request(user, destination="Bali, Indonesia")
    make_request(user, destination="Kyoto")

    page = reporting.list_all_requests(db_session, as_actor(admin), destination="  BALI ")

    assert [r.destination for r in page.items] == ["Bali, Indonesia"]


def test_admin_listing_requires_admin(db_session, user, as_actor):
    with pytest.raises(ForbiddenError):
        reporting.list_all_requests(db_session, as_actor(user))


def test_request_stats(db_session, user, guide, make_request, as_actor):
    make_request(user)
    make_request(user)
    make_request(user, status=Status.ASSIGNED, guide=guide)
    make_request(user, status=Status.COMPLETED, guide=guide)

    stats = reporting.user_request_stats(db_session, as_actor(user))
    assert stats == schemas.RequestStats(total=4, pending=2, assigned=1, completed=1)

    guide_stats = reporting.guide_request_stats(db_session, as_actor(guide))
    assert guide_stats.total == 2
    assert guide_stats.pending == 0


def test_request_detail_includes_activity(db_session, user, guide, admin, make_request, as_actor):
    db_request = request_lifecycle.create_request(db_session, as_actor(user), "Kyoto")
    request_lifecycle.assign_request(db_session, as_actor(admin), db_request.id, guide.id)

    detail = reporting.get_request_detail(db_session, as_actor(admin), db_request.id)

    assert detail.request.user.name == "Alice Traveller"
    assert detail.request.tour_guide.name == "Gina Guide"
    assert [a.action for a in detail.activities] == ["assign_request", "create_request"]
    assert detail.activities[0].actor_name == "Ada Admin"


def test_guides_with_workload(db_session, user, guide, other_guide, admin, make_request, as_actor):
    make_request(user, status=Status.ASSIGNED, guide=guide)
    make_request(user, status=Status.IN_PROGRESS, guide=guide)
    make_request(user, status=Status.COMPLETED, guide=guide)

    page = reporting.list_guides_with_workload(db_session, as_actor(admin))

    by_id = {g.id: g for g in page.items}
    assert page.pagination.total == 2
    assert (by_id[guide.id].total_requests, by_id[guide.id].active_requests, by_id[guide.id].completed_requests) == (3, 2, 1)
    assert by_id[other_guide.id].total_requests == 0
    assert by_id[other_guide.id].active_requests == 0


def test_guide_detail_missing_guide(db_session, admin, user, as_actor):
    with pytest.raises(NotFoundError):
        reporting.get_guide_detail(db_session, as_actor(admin), user.id)


def test_user_bookings_carry_package_summary(db_session, user, make_package, as_actor):
    package = make_package(title="Kyoto Temples", destination="Kyoto")
    payload = schemas.BookingCreate(
        package_id=package.id, departure_date=datetime.date(2026, 12, 1), num_travelers=2
    )
    booking = bookings.create_booking(db_session, as_actor(user), payload)

    page = reporting.list_user_bookings(db_session, as_actor(user))

    assert page.pagination.total == 1
    item = page.items[0]
    assert item.id == booking.id
    assert item.package_title == "Kyoto Temples"
    assert item.package_duration_days == 4


def test_dashboard_stats(db_session, user, guide, admin, make_user, make_request, make_package, as_actor):
    make_user(models.UserRole.TOUR_GUIDE, active=False)
    make_request(user)
    make_request(user, status=Status.ASSIGNED, guide=guide)
    package = make_package()
    make_package(title="Retired Tour", active=False)
    payload = schemas.BookingCreate(
        package_id=package.id, departure_date=datetime.date(2026, 12, 1), num_travelers=1
    )
    bookings.create_booking(db_session, as_actor(user), payload)

    stats = reporting.dashboard_stats(db_session, as_actor(admin))

    assert stats.total_requests == 2
    assert stats.pending_requests == 1
    assert stats.assigned_requests == 1
    assert stats.total_users == 1
    assert stats.total_tour_guides == 2
    assert stats.active_tour_guides == 1
    assert stats.total_packages == 2
    assert stats.active_packages == 1
    assert stats.pending_bookings == 1
    assert stats.cancelled_bookings == 0
