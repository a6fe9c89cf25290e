import pytest

from app.core.errors import ConsistencyError, InvalidTaxIdError
from app.models.seller import Seller
from app.models.shopper import Shopper
from app.services.customer_sync import owner_profile, resolve_tax_id
from tests.conftest import VALID_CNPJ, VALID_CPF, make_order, make_seller


def test_creates_customer_and_persists_its_id(db_session, fake_gateway, reconciler):
    seller = make_seller(db_session)

    resolution = reconciler.ensure_customer(owner_profile(seller))

    assert resolution.created is True
    assert resolution.tax_id == VALID_CNPJ
    db_session.refresh(seller)
    assert seller.payments_customer_id == resolution.customer_id

    (sent,) = fake_gateway.calls_to("create_customer")[0]
    assert sent["cpfCnpj"] == VALID_CNPJ
    assert sent["personType"] == "JURIDICA"
    assert sent["name"] == "Loja Exemplo"
    assert sent["email"] == "contato@loja.example.com"
    assert sent["externalReference"] == f"seller_{seller.id}"
    assert sent["groupName"] == "SELLER"


def test_customer_id_is_flushed_without_commit(db_session, fake_gateway, reconciler):
    seller = make_seller(db_session)

    resolution = reconciler.ensure_customer(owner_profile(seller), commit=False)
    assert seller.payments_customer_id == resolution.customer_id
    db_session.rollback()

    db_session.refresh(seller)
    assert seller.payments_customer_id is None


def test_shopper_customer_uses_shopper_data(db_session, fake_gateway, reconciler):
    order = make_order(db_session)
    shopper = db_session.get(Shopper, order.shopper_id)
    reconciler.ensure_customer(owner_profile(shopper))

    (sent,) = fake_gateway.calls_to("create_customer")[0]
    assert sent["cpfCnpj"] == VALID_CPF
    assert sent["personType"] == "FISICA"
    assert sent["mobilePhone"] == "11977776666"
    assert sent["groupName"] == "SHOPPER"


def test_subaccount_key_is_sent_as_access_token(db_session, fake_gateway, reconciler):
    seller = make_seller(db_session, subaccount_api_key="sub-key-1")

    reconciler.ensure_customer(owner_profile(seller))

    assert fake_gateway.headers_for("create_customer") == [{"access_token": "sub-key-1"}]


def test_deleted_remote_customer_is_recreated(db_session, fake_gateway, reconciler):
    seller = make_seller(db_session, payments_customer_id="cus_old")
    fake_gateway.customers["cus_old"] = {"id": "cus_old", "deleted": True, "cpfCnpj": VALID_CNPJ}

    resolution = reconciler.ensure_customer(owner_profile(seller))

    assert resolution.recreated is True
    assert resolution.customer_id != "cus_old"
    db_session.refresh(seller)
    assert seller.payments_customer_id == resolution.customer_id


def test_matching_customer_is_reused_without_writes(db_session, fake_gateway, reconciler, sleeps):
    seller = make_seller(db_session, payments_customer_id="cus_ok")
    fake_gateway.customers["cus_ok"] = {"id": "cus_ok", "cpfCnpj": "11.222.333/0001-81"}

    resolution = reconciler.ensure_customer(owner_profile(seller))

    assert resolution.customer_id == "cus_ok"
    assert not (resolution.created or resolution.recreated or resolution.updated)
    assert fake_gateway.calls_to("update_customer") == []
    assert sleeps == []


def test_tax_id_mismatch_updates_and_waits_before_rereading(db_session, fake_gateway, reconciler, sleeps):
    seller = make_seller(db_session, payments_customer_id="cus_1")
    fake_gateway.customers["cus_1"] = {"id": "cus_1", "cpfCnpj": VALID_CPF}

    resolution = reconciler.ensure_customer(owner_profile(seller))

    assert resolution.updated is True
    assert resolution.tax_id == VALID_CNPJ
    assert fake_gateway.calls_to("update_customer") == [
        ("cus_1", {"cpfCnpj": VALID_CNPJ, "personType": "JURIDICA"})
    ]
    assert sleeps == [3.0]
    assert [name for name, _, _ in fake_gateway.calls][-1] == "get_customer"


def test_update_not_reflected_raises_consistency_error(db_session, fake_gateway, reconciler):
    seller = make_seller(db_session, payments_customer_id="cus_1")
    fake_gateway.customers["cus_1"] = {"id": "cus_1", "cpfCnpj": VALID_CPF}
    fake_gateway.ignore_customer_updates = True

    with pytest.raises(ConsistencyError):
        reconciler.ensure_customer(owner_profile(seller))


def test_missing_tax_id_everywhere_is_rejected(db_session, fake_gateway, reconciler):
    seller = make_seller(db_session, store_info={"name": {"pt": "Sem Documento"}})

    with pytest.raises(InvalidTaxIdError):
        reconciler.ensure_customer(owner_profile(seller))
    assert fake_gateway.calls == []


def test_remote_tax_id_is_used_when_none_is_known_locally(db_session, fake_gateway, reconciler):
    seller = make_seller(db_session, store_info={}, payments_customer_id="cus_1")
    fake_gateway.customers["cus_1"] = {"id": "cus_1", "cpfCnpj": VALID_CPF}

    resolution = reconciler.ensure_customer(owner_profile(seller))

    assert resolution.tax_id == VALID_CPF
    assert fake_gateway.calls_to("update_customer") == []


def test_tax_id_priority_skips_masked_values():
    seller = Seller(id=7, store_info={"business_id": VALID_CNPJ}, tax_id="39053344705")
    profile = owner_profile(seller)

    assert resolve_tax_id(profile, {"cpfCnpj": "529.982.247-25"}) == VALID_CPF
    assert resolve_tax_id(profile, {"cpfCnpj": "***.***.***-**"}) == VALID_CNPJ
    assert resolve_tax_id(profile, {"cpf_cnpj": "123"}) == VALID_CNPJ

    bare = owner_profile(Seller(id=8))
    assert resolve_tax_id(bare, {"creditCardHolderInfo": {"cpfCnpj": VALID_CPF}}) == VALID_CPF
    assert resolve_tax_id(bare, None) is None


def test_store_info_stored_as_json_text_is_read_as_dict():
    seller = Seller(id=3, name="Fallback", store_info='{"business_id": "11222333000181", "name": {"pt": "Loja JSON"}}')

    profile = owner_profile(seller)

    assert profile.name == "Loja JSON"
    assert profile.stored_tax_ids[0] == VALID_CNPJ
    assert profile.external_reference == "seller_3"


def test_repair_fills_missing_fields_and_waits(db_session, fake_gateway, reconciler, sleeps):
    seller = make_seller(db_session, payments_customer_id="cus_1")
    fake_gateway.customers["cus_1"] = {"id": "cus_1", "name": "Loja", "email": "a@b.com"}

    outcome = reconciler.repair_customer(owner_profile(seller), "cus_1", {}, VALID_CNPJ)

    assert outcome.repaired is True
    assert outcome.tax_id == VALID_CNPJ
    assert outcome.missing_fields == []
    customer_id, patch = fake_gateway.calls_to("update_customer")[0]
    assert customer_id == "cus_1"
    assert patch["cpfCnpj"] == VALID_CNPJ
    assert patch["mobilePhone"] == "1133334444"
    assert sleeps == [5.0]


def test_repair_reports_fields_still_missing(db_session, fake_gateway, reconciler):
    seller = make_seller(db_session, payments_customer_id="cus_1")
    fake_gateway.customers["cus_1"] = {"id": "cus_1", "name": "Loja", "email": "a@b.com", "mobilePhone": "11"}
    fake_gateway.ignore_customer_updates = True

    outcome = reconciler.repair_customer(owner_profile(seller), "cus_1", {}, VALID_CNPJ, card_payment=True)

    assert outcome.repaired is False
    assert "cpfCnpj" in outcome.missing_fields
    assert "postalCode" in outcome.missing_fields
