import pytest

from carwash.models.auth_model import User, UserRole
from carwash.models.policy_model import BookingPolicy
from fakes import FakeRepository, FakeStore


@pytest.fixture
def policy():
    return BookingPolicy(submit_retry_base_delay=0)


@pytest.fixture
def store():
    store = FakeStore()
    for user in (
        User(id=1, email="anna@example.com", name="Anna"),
        User(id=2, email="bela@example.com", name="Bela"),
        User(id=3, email="admin@example.com", name="Admin", role=UserRole.ADMIN),
        User(id=4, email="washer@example.com", name="Washer", role=UserRole.CARWASH_ADMIN),
    ):
        store.users[user.id] = user
    return store


@pytest.fixture
def repo(store):
    return FakeRepository(store)


@pytest.fixture
def user(store):
    return store.users[1]


@pytest.fixture
def other_user(store):
    return store.users[2]


@pytest.fixture
def admin(store):
    return store.users[3]


@pytest.fixture
def carwash_admin(store):
    return store.users[4]
