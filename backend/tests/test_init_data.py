"""
初始化数据脚本测试
"""
from init_data import seed, SEED_ROOMS
from staybook.models.ontology import Room, User, UserRole
from staybook.security.auth import verify_password


def test_seed_creates_accounts_and_rooms(db_session):
    users, rooms = seed(db_session)
    assert users == 2
    assert rooms == len(SEED_ROOMS)

    admin = db_session.query(User).filter(User.email == "admin@hotel.com").one()
    assert admin.role == UserRole.ADMIN
    assert verify_password("admin123", admin.password_hash)
    assert db_session.query(Room).filter(Room.room_number == "PS01").one().capacity_adults == 4


def test_seed_is_idempotent(db_session):
    seed(db_session)
    assert seed(db_session) == (0, 0)
    assert db_session.query(User).count() == 2
