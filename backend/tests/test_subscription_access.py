from datetime import date

import pytest

from app.core.errors import ForbiddenError
from app.models.subscription import SellerSubscription
from app.services.subscription_access import SubscriptionAccessService
from tests.conftest import make_seller

TODAY = date(2025, 4, 15)


def _subscription(session, status, next_due_date=None):
    seller = make_seller(session)
    row = SellerSubscription(
        seller_id=seller.id,
        plan_name="Plano Básico",
        value=29.9,
        status=status,
        next_due_date=next_due_date,
    )
    session.add(row)
    session.commit()
    return seller


def _validate(session, seller_id):
    return SubscriptionAccessService(session).validate_seller(seller_id, today=TODAY)


def test_active_subscription_grants_access(db_session):
    seller = _subscription(db_session, "active", date(2025, 5, 1))

    assert _validate(db_session, seller.id).status == "active"


def test_active_subscription_past_due_still_grants_access(db_session):
    seller = _subscription(db_session, "active", date(2025, 4, 1))

    assert _validate(db_session, seller.id).status == "active"


def test_without_subscription_access_is_denied(db_session):
    seller = make_seller(db_session)

    with pytest.raises(ForbiddenError, match="Nenhuma assinatura"):
        _validate(db_session, seller.id)


@pytest.mark.parametrize("status", ["inactive", "canceled"])
def test_inactive_or_canceled_is_denied(db_session, status):
    seller = _subscription(db_session, status)

    with pytest.raises(ForbiddenError, match="inativa ou cancelada") as exc_info:
        _validate(db_session, seller.id)
    assert exc_info.value.status_code == 403


def test_overdue_is_denied(db_session):
    seller = _subscription(db_session, "overdue", date(2025, 5, 1))

    with pytest.raises(ForbiddenError, match="vencida"):
        _validate(db_session, seller.id)


def test_pending_past_due_is_treated_as_overdue(db_session):
    seller = _subscription(db_session, "pending", date(2025, 4, 1))

    with pytest.raises(ForbiddenError, match="vencida"):
        _validate(db_session, seller.id)


def test_pending_asks_for_tax_id(db_session):
    seller = _subscription(db_session, "pending", date(2025, 5, 1))

    with pytest.raises(ForbiddenError, match="CPF/CNPJ"):
        _validate(db_session, seller.id)
