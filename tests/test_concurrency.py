import datetime
import threading
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from tourbook import bookings, models, request_lifecycle, schemas
from tourbook.config import settings
from tourbook.database import Base, enable_sqlite_foreign_keys
from tourbook.exceptions import InsufficientSeatsError, TourbookError

Status = models.RequestStatus


@pytest.fixture
def file_sessionmaker(tmp_path):
    """Separate connections per thread need a real file, not an in-memory database."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'concurrency.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def _seed(Session, guides=2, requests=1):
    with Session() as db:
        customer = models.User(name="Alice", email="alice@example.com", phone="+15550000001",
                               hashed_password="x", role=models.UserRole.USER)
        admin = models.User(name="Ada", email="ada@example.com", phone="+15550000002",
                            hashed_password="x", role=models.UserRole.ADMIN)
        guide_rows = [
            models.User(name=f"Guide {n}", email=f"guide{n}@example.com", phone=f"+1555100000{n}",
                        hashed_password="x", role=models.UserRole.TOUR_GUIDE)
            for n in range(guides)
        ]
        db.add_all([customer, admin, *guide_rows])
        db.flush()
        request_rows = [models.TravelRequest(user_id=customer.id, destination="Kyoto") for _ in range(requests)]
        db.add_all(request_rows)
        db.commit()
        return admin.id, [g.id for g in guide_rows], [r.id for r in request_rows]


def _race(Session, jobs):
    """Runs each (request_id, guide_id) assignment on its own thread and session."""
    barrier = threading.Barrier(len(jobs))
    outcomes = [None] * len(jobs)

    def worker(index, admin_id, request_id, guide_id):
        actor = schemas.Actor(id=admin_id, role=models.UserRole.ADMIN)
        with Session() as db:
            barrier.wait()
            try:
                request_lifecycle.assign_request(db, actor, request_id, guide_id)
                outcomes[index] = "ok"
            except TourbookError as e:
                outcomes[index] = e

    threads = [threading.Thread(target=worker, args=(i, *job)) for i, job in enumerate(jobs)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return outcomes


def test_concurrent_assignment_of_one_request(file_sessionmaker):
    """Two admins assign the same pending request at once: exactly one wins."""
    admin_id, guide_ids, (request_id,) = _seed(file_sessionmaker, guides=2, requests=1)

    outcomes = _race(file_sessionmaker, [(admin_id, request_id, guide_ids[0]), (admin_id, request_id, guide_ids[1])])

    assert outcomes.count("ok") == 1
    winner = guide_ids[outcomes.index("ok")]
    with file_sessionmaker() as db:
        db_request = db.get(models.TravelRequest, request_id)
        assert db_request.status == Status.ASSIGNED
        assert db_request.tour_guide_id == winner


def test_concurrent_assignments_respect_workload_cap(file_sessionmaker, monkeypatch):
    monkeypatch.setattr(settings, "MAX_GUIDE_WORKLOAD", 1)
    admin_id, (guide_id,), request_ids = _seed(file_sessionmaker, guides=1, requests=2)

    outcomes = _race(file_sessionmaker, [(admin_id, request_id, guide_id) for request_id in request_ids])

    assert outcomes.count("ok") == 1
    with file_sessionmaker() as db:
        assert request_lifecycle.count_active_requests(db, guide_id) == 1


def _seed_package(Session, seats_total):
    with Session() as db:
        customer = models.User(name="Alice", email="alice@example.com", phone="+15550000001",
                               hashed_password="x", role=models.UserRole.USER)
        package = models.Package(
            title="Kyoto Temples", slug="kyoto-temples", destination="Kyoto", price=Decimal("100.00"),
            duration_days=3, duration_nights=2, departure_days=[], seats_total=seats_total,
            seats_available=seats_total, itinerary=[], includes=[], excludes=[], highlights=[],
        )
        db.add_all([customer, package])
        db.commit()
        return customer.id, package.id


@pytest.mark.parametrize("threads, seats_each, seats_total", [(8, 2, 5), (6, 1, 4)])
def test_concurrent_bookings_never_oversell(file_sessionmaker, threads, seats_each, seats_total):
    customer_id, package_id = _seed_package(file_sessionmaker, seats_total)
    actor = schemas.Actor(id=customer_id, role=models.UserRole.USER)
    payload = schemas.BookingCreate(
        package_id=package_id, departure_date=datetime.date(2026, 12, 1), num_travelers=seats_each
    )
    barrier = threading.Barrier(threads)
    outcomes = [None] * threads

    def worker(index):
        with file_sessionmaker() as db:
            barrier.wait()
            try:
                bookings.create_booking(db, actor, payload)
                outcomes[index] = "ok"
            except TourbookError as e:
                outcomes[index] = e

    workers = [threading.Thread(target=worker, args=(i,)) for i in range(threads)]
    for t in workers:
        t.start()
    for t in workers:
        t.join()

    expected = seats_total // seats_each
    assert outcomes.count("ok") == expected
    assert all(isinstance(o, InsufficientSeatsError) for o in outcomes if o != "ok")

    with file_sessionmaker() as db:
        available = db.query(models.Package.seats_available).filter(models.Package.id == package_id).scalar()
        reserved = bookings.reserved_seats(db, package_id)
        assert reserved == expected * seats_each
        assert available == seats_total - reserved
        assert available >= 0
