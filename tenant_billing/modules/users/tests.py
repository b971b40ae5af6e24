"""
Tests para el modelo de Usuarios
"""

import pytest
from uuid import uuid4

from tenant_billing.modules.users.models import User, UserRole, ROLE_RANK


def make_user(role=UserRole.EMPLOYEE, **overrides):
    values = dict(tenant_id=uuid4(), first_name="ada", last_name="lovelace", email="ada@example.com", role=role)
    values.update(overrides)
    return User(**values)


class TestUserRoles:
    def test_rank_order_is_explicit(self):
        ordered = sorted(ROLE_RANK, key=ROLE_RANK.get, reverse=True)
        assert ordered == [UserRole.ADMIN, UserRole.OWNER, UserRole.MANAGER, UserRole.EMPLOYEE]

    @pytest.mark.parametrize("role, minimum, expected", [
        (UserRole.ADMIN, UserRole.OWNER, True),
        (UserRole.OWNER, UserRole.ADMIN, False),
        (UserRole.MANAGER, UserRole.MANAGER, True),
        (UserRole.EMPLOYEE, UserRole.MANAGER, False),
    ])
    def test_has_minimum_role(self, role, minimum, expected):
        assert make_user(role).has_minimum_role(minimum) is expected

    def test_is_manager(self):
        assert make_user(UserRole.OWNER).is_manager
        assert not make_user(UserRole.EMPLOYEE).is_manager

    def test_change_role(self):
        user = make_user()
        user.change_role(UserRole.ADMIN)
        assert user.has_role(UserRole.ADMIN)


class TestUserModel:
    def test_names(self):
        user = make_user()
        assert user.full_name == "ada lovelace"
        assert user.initials == "AL"

    def test_login_state(self):
        user = make_user()
        assert user.can_login()
        user.deactivate()
        assert not user.can_login()
        user.activate()
        user.update_last_login()
        assert user.last_login_at is not None

    def test_verify_email(self):
        user = make_user()
        assert not user.is_email_verified
        user.verify_email()
        assert user.is_email_verified

    def test_users_block_company_deletion(self, uow, sample_company):
        with uow.transaction():
            uow.users.add(make_user(tenant_id=sample_company.id))

        assert uow.users.get_by_email("ADA@example.com") is not None
        assert uow.companies.count_dependents(sample_company.id) == 1
