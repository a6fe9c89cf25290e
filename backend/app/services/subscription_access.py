from __future__ import annotations

from datetime import date

from sqlmodel import Session, select

from app.core.errors import ForbiddenError
from app.core.logging_setup import get_logger
from app.models.subscription import SellerSubscription, SubscriptionStatus

logger = get_logger("subscriptions.access")


class SubscriptionAccessService:
    """Libera o acesso do seller ao app conforme a situação da assinatura."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def validate_seller(self, seller_id: int, *, today: date | None = None) -> SellerSubscription:
        today = today or date.today()
        subscription = self.session.exec(
            select(SellerSubscription)
            .where(SellerSubscription.seller_id == seller_id)
            .where(SellerSubscription.deleted_at.is_(None))
            .order_by(SellerSubscription.created_at.desc())
        ).first()

        if not subscription:
            raise ForbiddenError("Nenhuma assinatura encontrada. Assine um plano para acessar o app.")

        status = subscription.status
        if status in (SubscriptionStatus.INACTIVE.value, SubscriptionStatus.CANCELED.value):
            raise ForbiddenError("Assinatura inativa ou cancelada.", details={"status": status})

        past_due = subscription.next_due_date is not None and subscription.next_due_date < today
        if status == SubscriptionStatus.OVERDUE.value or (past_due and status != SubscriptionStatus.ACTIVE.value):
            logger.info("Acesso bloqueado para seller %s: assinatura vencida", seller_id)
            raise ForbiddenError("Assinatura vencida. Regularize o pagamento para continuar.", details={"status": status})

        if status == SubscriptionStatus.PENDING.value:
            raise ForbiddenError(
                "Assinatura pendente. É necessário completar o cadastro com CPF/CNPJ.",
                details={"status": status},
            )
        return subscription
