"""
测试 UserService - 注册、登录、资料与积分
"""
import pytest
from decimal import Decimal

from staybook.hotel.domain.errors import Conflict
from staybook.models.ontology import UserRole
from staybook.models.schemas import UserRegister, ProfileUpdate, PasswordChange
from staybook.security.auth import decode_token
from staybook.services.user_service import UserService, user_to_dict


@pytest.fixture
def user_service(db_session):
    return UserService(db_session)


def _register_data(email="new@example.com"):
    return UserRegister(first_name="Carol", last_name="Newman", email=email,
                        password="secret123", phone="9123456780")


class TestRegisterAndLogin:
    def test_register(self, user_service):
        user, token = user_service.register(_register_data("New@Example.com"))
        assert user.email == "new@example.com"
        assert user.role == UserRole.USER
        assert user.loyalty_points == 0
        assert decode_token(token)["sub"] == str(user.id)

    def test_register_duplicate_email(self, user_service, sample_user):
        with pytest.raises(Conflict):
            user_service.register(_register_data("guest@example.com"))

    def test_authenticate(self, user_service, sample_user):
        result = user_service.authenticate("guest@example.com", "secret123")
        assert result["user"]["email"] == "guest@example.com"
        assert result["user"]["last_login"] is not None
        assert "password_hash" not in result["user"]

    def test_wrong_password(self, user_service, sample_user):
        assert user_service.authenticate("guest@example.com", "wrong-pass") is None

    def test_unknown_email(self, user_service):
        assert user_service.authenticate("nobody@example.com", "secret123") is None

    def test_deactivated_account(self, user_service, db_session, sample_user):
        sample_user.is_active = False
        db_session.commit()
        with pytest.raises(ValueError, match="已停用"):
            user_service.authenticate("guest@example.com", "secret123")


class TestProfile:
    def test_update_profile(self, user_service, sample_user):
        user = user_service.update_profile(sample_user.id, ProfileUpdate(first_name="  Alicia "))
        assert user.first_name == "Alicia"
        assert user.last_name == "Guest"

    def test_change_password(self, user_service, sample_user):
        user_service.change_password(sample_user.id, PasswordChange(
            current_password="secret123", new_password="newsecret"))
        assert user_service.authenticate("guest@example.com", "newsecret") is not None

    def test_change_password_wrong_current(self, user_service, sample_user):
        with pytest.raises(ValueError, match="当前密码错误"):
            user_service.change_password(sample_user.id, PasswordChange(
                current_password="nope123", new_password="newsecret"))

    def test_user_to_dict(self, sample_user):
        data = user_to_dict(sample_user)
        assert data["full_name"] == "Alice Guest"
        assert data["role"] == "user"


class TestAdminMaintenance:
    def test_list_users(self, user_service, sample_user, other_user, admin_user):
        users, total = user_service.list_users()
        assert total == 3
        users, total = user_service.list_users(search="bob")
        assert [u.email for u in users] == ["other@example.com"]
        users, total = user_service.list_users(role=UserRole.ADMIN)
        assert total == 1

    def test_deactivate_user(self, user_service, sample_user):
        user = user_service.set_status(sample_user.id, False)
        assert user.is_active is False
        users, total = user_service.list_users(is_active=False)
        assert total == 1

    def test_cannot_deactivate_admin(self, user_service, admin_user):
        with pytest.raises(ValueError, match="管理员"):
            user_service.set_status(admin_user.id, False)


class TestLoyaltyPoints:
    def test_award_points(self, user_service, db_session, sample_user):
        assert user_service.award_loyalty_points(sample_user.id, Decimal("2360.00")) == 23
        db_session.commit()
        db_session.refresh(sample_user)
        assert sample_user.loyalty_points == 23

    def test_small_amount_no_points(self, user_service, sample_user):
        assert user_service.award_loyalty_points(sample_user.id, Decimal("99.99")) == 0
