"""
Pytest 配置和共享 fixtures
"""
import os

# 应用启动时 init_db 使用内存库，避免在工作目录生成数据库文件
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from staybook.database import Base, get_db
from staybook.models import ontology  # noqa: F401
from staybook.models.ontology import User, UserRole, Room, RoomType, BedType
from staybook.security.auth import get_password_hash, create_access_token
from staybook.security.context import RequestContext
from staybook.services.room_locks import RoomLockRegistry
from staybook.main import app

from factories import NOW


@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """创建数据库会话"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(db_session):
    """创建测试客户端"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ============== 用户 Fixtures ==============

def _create_user(db_session, email, role=UserRole.USER, first_name="Test", last_name="User"):
    user = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone="9876543210",
        password_hash=get_password_hash("secret123"),
        role=role,
        is_active=True,
        loyalty_points=0,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def sample_user(db_session):
    """普通用户"""
    return _create_user(db_session, "guest@example.com", first_name="Alice", last_name="Guest")


@pytest.fixture
def other_user(db_session):
    """另一个普通用户"""
    return _create_user(db_session, "other@example.com", first_name="Bob", last_name="Other")


@pytest.fixture
def admin_user(db_session):
    """管理员"""
    return _create_user(db_session, "admin@example.com", role=UserRole.ADMIN,
                        first_name="Admin", last_name="Boss")


@pytest.fixture
def user_token(sample_user):
    return create_access_token(sample_user.id, sample_user.role)


@pytest.fixture
def other_token(other_user):
    return create_access_token(other_user.id, other_user.role)


@pytest.fixture
def admin_token(admin_user):
    return create_access_token(admin_user.id, admin_user.role)


@pytest.fixture
def user_context(sample_user):
    return RequestContext(user_id=sample_user.id, role=sample_user.role.value)


@pytest.fixture
def admin_context(admin_user):
    return RequestContext(user_id=admin_user.id, role=admin_user.role.value)


# ============== 房间 Fixtures ==============

@pytest.fixture
def sample_room(db_session):
    """双人房：房价 1000，容量 2 成人 + 1 儿童"""
    room = Room(
        room_number="101",
        room_type=RoomType.DOUBLE,
        description="Comfortable double room with city view",
        price_per_night=Decimal("1000.00"),
        capacity_adults=2,
        capacity_children=1,
        bed_type=BedType.QUEEN,
        floor=1,
        amenities=["wifi", "tv", "ac"],
        is_active=True,
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def suite_room(db_session):
    """套房：房价 2500，容量 4 成人 + 2 儿童"""
    room = Room(
        room_number="501",
        room_type=RoomType.SUITE,
        description="Spacious suite with ocean view and balcony",
        price_per_night=Decimal("2500.00"),
        capacity_adults=4,
        capacity_children=2,
        bed_type=BedType.KING,
        floor=5,
        amenities=["wifi", "tv", "minibar", "jacuzzi"],
        is_active=True,
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def fixed_clock():
    return lambda: NOW


@pytest.fixture
def lock_registry():
    return RoomLockRegistry()
