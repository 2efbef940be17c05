from datetime import date, timedelta

import pytest

from app import create_app
from config import TestConfig
from models import db
from models.booking import Booking
from models.room import Room
from models.user import User, Role
from security.csrf import CSRF_COOKIE, CSRF_HEADER
from security.password import hash_password

PASSWORD = "correct-horse-battery"


@pytest.fixture()
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def future_day():
    # a Wednesday comfortably in the future, so "no past bookings" never trips
    day = date.today() + timedelta(days=14)
    return day + timedelta(days=(2 - day.weekday()) % 7)


def make_user(email, *roles, full_name=None):
    user = User(email=email, password_hash=hash_password(PASSWORD), full_name=full_name)
    for name in roles:
        user.roles.append(Role.query.filter_by(name=name).one())
    db.session.add(user)
    db.session.commit()
    return user


def make_room(name="R1", capacity=8, is_active=True, location="2F"):
    room = Room(name=name, capacity=capacity, is_active=is_active, location=location)
    db.session.add(room)
    db.session.commit()
    return room


def make_booking(room, day, start, end, status="approved", title="Weekly sync", user=None):
    booking = Booking(
        room_id=room.id,
        booking_date=day,
        start_time=start,
        end_time=end,
        status=status,
        title=title,
        user_id=user.id if user else None,
    )
    db.session.add(booking)
    db.session.commit()
    return booking


def login(client, email):
    resp = client.post("/auth/login", json={"email": email, "password": PASSWORD})
    assert resp.status_code == 200, resp.get_json()
    token = client.get_cookie(CSRF_COOKIE).value
    client.environ_base[f"HTTP_{CSRF_HEADER.upper().replace('-', '_')}"] = token
    return resp


@pytest.fixture()
def member(app):
    return make_user("member@example.com", "MEMBER", full_name="Mia Member")


@pytest.fixture()
def admin(app):
    return make_user("admin@example.com", "ADMIN", full_name="Ada Admin")


@pytest.fixture()
def member_client(client, member):
    login(client, member.email)
    return client


@pytest.fixture()
def admin_client(app, admin):
    client = app.test_client()
    login(client, admin.email)
    return client
