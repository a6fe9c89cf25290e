from __future__ import annotations

from enum import Enum

from app.services.gateway import GatewayErrorKind


class HealingStep(str, Enum):
    RECREATE_CUSTOMER = "recreate_customer"
    REPAIR_CUSTOMER = "repair_customer"
    FORCE_RECREATE_CUSTOMER = "force_recreate_customer"
    GIVE_UP = "give_up"


class SelfHealingPolicy:
    """Sequência limitada de correções após falha na criação da assinatura.

    Cada passo é usado no máximo uma vez por criação:

    * cliente removido no gateway -> recriar o cliente;
    * CPF/CNPJ ausente ou inválido no gateway -> reparar o cliente e, se ainda
      falhar, recriá-lo como último recurso;
    * qualquer outro erro -> desistir.
    """

    def __init__(self) -> None:
        self.used: list[HealingStep] = []

    def _take(self, step: HealingStep) -> HealingStep:
        self.used.append(step)
        return step

    def next_step(self, kind: GatewayErrorKind) -> HealingStep:
        if kind is GatewayErrorKind.CUSTOMER_REMOVED:
            if HealingStep.RECREATE_CUSTOMER not in self.used:
                return self._take(HealingStep.RECREATE_CUSTOMER)
        elif kind is GatewayErrorKind.TAX_ID_INVALID:
            if HealingStep.REPAIR_CUSTOMER not in self.used:
                return self._take(HealingStep.REPAIR_CUSTOMER)
            if HealingStep.FORCE_RECREATE_CUSTOMER not in self.used:
                return self._take(HealingStep.FORCE_RECREATE_CUSTOMER)
        return HealingStep.GIVE_UP

    @property
    def attempts(self) -> int:
        return len(self.used)
