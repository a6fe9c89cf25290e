from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union

from sqlmodel import Session

from app.core.config import settings
from app.core.errors import ConsistencyError, InvalidTaxIdError
from app.core.logging_setup import get_logger
from app.models.seller import Seller
from app.models.shopper import Shopper
from app.services.gateway import GatewayClient
from app.utils.formatting import infer_person_type, only_digits, valid_tax_id
from app.utils.redact import describe_tax_id

logger = get_logger("customer_sync")

Owner = Union[Seller, Shopper]

REQUIRED_CUSTOMER_FIELDS = ("name", "email", "cpfCnpj", "mobilePhone")
CARD_CUSTOMER_FIELDS = ("address", "addressNumber", "postalCode")


@dataclass
class OwnerProfile:
    """Visão uniforme de seller/shopper para a sincronização de clientes."""

    entity: Owner
    kind: str
    name: str | None
    email: str | None
    phone: str | None
    stored_tax_ids: tuple[str | None, ...]
    address: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] | None = None

    @property
    def customer_id(self) -> str | None:
        return self.entity.payments_customer_id

    @customer_id.setter
    def customer_id(self, value: str) -> None:
        self.entity.payments_customer_id = value

    @property
    def external_reference(self) -> str:
        return f"{self.kind}_{self.entity.id}"

    @property
    def group_name(self) -> str:
        return self.kind.upper()


def owner_profile(entity: Owner) -> OwnerProfile:
    if isinstance(entity, Seller):
        store = entity.store_data()
        return OwnerProfile(
            entity=entity,
            kind="seller",
            name=entity.store_name() or entity.name,
            email=store.get("email") or entity.email,
            phone=store.get("phone") or entity.phone,
            stored_tax_ids=(store.get("business_id"), entity.tax_id),
            address={
                "address": entity.address,
                "addressNumber": entity.address_number,
                "province": entity.province,
                "postalCode": entity.postal_code,
            },
            headers={"access_token": entity.subaccount_api_key} if entity.subaccount_api_key else None,
        )
    return OwnerProfile(
        entity=entity,
        kind="shopper",
        name=entity.name,
        email=entity.email,
        phone=entity.mobile_phone,
        stored_tax_ids=(entity.tax_id,),
        address={
            "address": entity.address,
            "addressNumber": entity.address_number,
            "province": entity.province,
            "postalCode": entity.postal_code,
        },
    )


@dataclass
class CustomerResolution:
    customer_id: str
    tax_id: str | None
    created: bool = False
    recreated: bool = False
    updated: bool = False


@dataclass
class RepairOutcome:
    repaired: bool
    tax_id: str | None
    missing_fields: list[str]


def resolve_tax_id(profile: OwnerProfile, billing_info: Optional[Dict[str, Any]]) -> str | None:
    """CPF/CNPJ candidato: billing info → cadastro da loja/entidade → titular do cartão."""
    billing_info = billing_info or {}
    explicit = billing_info.get("cpfCnpj") or billing_info.get("cpf_cnpj") or billing_info.get("tax_id")
    candidates = [explicit, *profile.stored_tax_ids]
    holder = billing_info.get("creditCardHolderInfo") or {}
    candidates.append(holder.get("cpfCnpj"))
    for candidate in candidates:
        tax_id = valid_tax_id(candidate)
        if tax_id:
            return tax_id
    return None


class CustomerReconciler:
    def __init__(
        self,
        session: Session,
        gateway: GatewayClient,
        *,
        settle_delay: float | None = None,
        repair_delay: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session
        self.gateway = gateway
        self.settle_delay = settings.customer_settle_delay_seconds if settle_delay is None else settle_delay
        self.repair_delay = settings.customer_repair_delay_seconds if repair_delay is None else repair_delay
        self.sleep = sleep

    def build_customer_data(
        self,
        profile: OwnerProfile,
        billing_info: Optional[Dict[str, Any]],
        tax_id: str,
    ) -> Dict[str, Any]:
        billing_info = billing_info or {}
        phone = only_digits(billing_info.get("mobilePhone") or billing_info.get("phone") or profile.phone) or None
        data = {
            "name": billing_info.get("name") or profile.name,
            "email": billing_info.get("email") or profile.email,
            "cpfCnpj": tax_id,
            "personType": infer_person_type(tax_id),
            "mobilePhone": phone,
            "phone": phone,
            "address": billing_info.get("address") or profile.address.get("address"),
            "addressNumber": billing_info.get("addressNumber") or profile.address.get("addressNumber"),
            "province": billing_info.get("province") or profile.address.get("province"),
            "postalCode": only_digits(billing_info.get("postalCode") or profile.address.get("postalCode")) or None,
            "externalReference": profile.external_reference,
            "groupName": profile.group_name,
        }
        return {key: value for key, value in data.items() if value not in (None, "")}

    def _store_customer_id(self, profile: OwnerProfile, customer_id: str, *, commit: bool = True) -> None:
        profile.customer_id = customer_id
        self.session.add(profile.entity)
        if commit:
            self.session.commit()
        else:
            self.session.flush()
        self.session.refresh(profile.entity)

    def create_customer(
        self,
        profile: OwnerProfile,
        billing_info: Optional[Dict[str, Any]],
        tax_id: str | None,
        *,
        commit: bool = True,
    ) -> str:
        if not tax_id:
            raise InvalidTaxIdError("CPF/CNPJ válido é obrigatório para cadastrar o cliente no gateway")
        data = self.build_customer_data(profile, billing_info, tax_id)
        logger.info(
            "Criando cliente no gateway para %s (cpfCnpj %s)",
            profile.external_reference,
            describe_tax_id(tax_id),
        )
        customer = self.gateway.create_customer(data, headers=profile.headers)
        self._store_customer_id(profile, customer["id"], commit=commit)
        return customer["id"]

    def ensure_customer(
        self,
        profile: OwnerProfile,
        billing_info: Optional[Dict[str, Any]] = None,
        *,
        commit: bool = True,
    ) -> CustomerResolution:
        tax_id = resolve_tax_id(profile, billing_info)

        if not profile.customer_id:
            customer_id = self.create_customer(profile, billing_info, tax_id, commit=commit)
            return CustomerResolution(customer_id=customer_id, tax_id=tax_id, created=True)

        customer = self.gateway.get_customer(profile.customer_id, headers=profile.headers)
        if customer.get("deleted"):
            logger.warning(
                "Cliente %s removido no gateway; recriando para %s",
                profile.customer_id,
                profile.external_reference,
            )
            customer_id = self.create_customer(profile, billing_info, tax_id, commit=commit)
            return CustomerResolution(customer_id=customer_id, tax_id=tax_id, recreated=True)

        remote_tax_id = only_digits(customer.get("cpfCnpj")) or None
        if not tax_id:
            if remote_tax_id:
                return CustomerResolution(customer_id=profile.customer_id, tax_id=remote_tax_id)
            raise InvalidTaxIdError("CPF/CNPJ não informado e ausente no cadastro do gateway")

        if remote_tax_id == tax_id:
            return CustomerResolution(customer_id=profile.customer_id, tax_id=tax_id)

        logger.info(
            "Atualizando CPF/CNPJ do cliente %s (gateway %s, local %s)",
            profile.customer_id,
            describe_tax_id(remote_tax_id),
            describe_tax_id(tax_id),
        )
        self.gateway.update_customer(
            profile.customer_id,
            {"cpfCnpj": tax_id, "personType": infer_person_type(tax_id)},
            headers=profile.headers,
        )
        self.sleep(self.settle_delay)

        refreshed = self.gateway.get_customer(profile.customer_id, headers=profile.headers)
        if only_digits(refreshed.get("cpfCnpj")) != tax_id:
            raise ConsistencyError(
                "CPF/CNPJ do cliente ainda não foi atualizado no gateway",
                details={"customer_id": profile.customer_id},
            )
        return CustomerResolution(customer_id=profile.customer_id, tax_id=tax_id, updated=True)

    def repair_customer(
        self,
        profile: OwnerProfile,
        customer_id: str,
        billing_info: Optional[Dict[str, Any]],
        tax_id: str | None,
        *,
        card_payment: bool = False,
    ) -> RepairOutcome:
        """Completa campos obrigatórios ausentes no cliente do gateway e confere o resultado."""
        customer = self.gateway.get_customer(customer_id, headers=profile.headers)
        required = REQUIRED_CUSTOMER_FIELDS + (CARD_CUSTOMER_FIELDS if card_payment else ())
        missing = [name for name in required if not customer.get(name)]
        logger.warning("Cliente %s com campos ausentes: %s", customer_id, ", ".join(missing) or "nenhum")

        local = self.build_customer_data(profile, billing_info, tax_id) if tax_id else {}
        patch = {name: local[name] for name in missing if local.get(name)}
        if tax_id and only_digits(customer.get("cpfCnpj")) != tax_id:
            patch["cpfCnpj"] = tax_id
            patch["personType"] = infer_person_type(tax_id)

        if patch:
            self.gateway.update_customer(customer_id, patch, headers=profile.headers)
        self.sleep(self.repair_delay)

        refreshed = self.gateway.get_customer(customer_id, headers=profile.headers)
        actual_tax_id = only_digits(refreshed.get("cpfCnpj")) or None
        still_missing = [name for name in required if not refreshed.get(name)]
        repaired = bool(actual_tax_id) and not still_missing
        logger.info(
            "Reparo do cliente %s %s (cpfCnpj %s)",
            customer_id,
            "concluído" if repaired else "incompleto",
            describe_tax_id(actual_tax_id),
        )
        return RepairOutcome(repaired=repaired, tax_id=actual_tax_id, missing_fields=still_missing)

    def recreate_customer(
        self,
        profile: OwnerProfile,
        billing_info: Optional[Dict[str, Any]],
        tax_id: str | None,
        *,
        commit: bool = True,
    ) -> str:
        logger.warning("Recriando cliente de %s (id anterior %s)", profile.external_reference, profile.customer_id)
        return self.create_customer(profile, billing_info, tax_id, commit=commit)
