from app.models.order import Order
from tests.conftest import VALID_CPF, make_order

CARD_BILLING = {
    "remoteIp": "198.51.100.20",
    "creditCard": {
        "holderName": "MARIA COMPRADORA",
        "number": "5162306219378829",
        "expiryMonth": "12",
        "expiryYear": "2030",
        "ccv": "318",
    },
    "creditCardHolderInfo": {
        "name": "Maria Compradora",
        "email": "maria@example.com",
        "postalCode": "89223-005",
        "addressNumber": "277",
        "phone": "4738010919",
    },
}


def _holder(**overrides):
    billing = {**CARD_BILLING, "creditCardHolderInfo": {**CARD_BILLING["creditCardHolderInfo"], **overrides}}
    return billing


def test_order_subscription_uses_order_and_product_defaults(db_session, shopper_service, fake_gateway):
    order = make_order(db_session, order_id=10, value=123.45)

    result = shopper_service.create(10)

    assert result.success is True
    assert result.status == 201
    subscription = result.data["subscription"]
    assert subscription["status"] == "pending"
    assert subscription["order_id"] == 10
    assert subscription["shopper_id"] == order.shopper_id
    assert subscription["plan_name"] == "Assinatura do Pedido #10"
    assert subscription["value"] == 123.45

    (payload,) = fake_gateway.calls_to("create_subscription")[0]
    assert payload["value"] == 123.45
    assert payload["cycle"] == "MONTHLY"
    assert payload["billingType"] == "BOLETO"
    assert payload["externalReference"] == "order_subscription_10"
    assert payload["description"] == "Assinatura do Pedido #10"

    db_session.refresh(order)
    assert order.external_id == subscription["external_id"]
    assert order.status == "active"


def test_value_priority(db_session, shopper_service, fake_gateway):
    explicit = make_order(db_session, value=123.45)
    discounted = make_order(db_session, value=None, price=150.0, subscription_discount_percent=10)
    fixed = make_order(db_session, value=None, price=150.0, subscription_price=99.0)
    plain = make_order(db_session, value=None, price=150.0)

    shopper_service.create(explicit.id, {"value": 80})
    shopper_service.create(discounted.id)
    shopper_service.create(fixed.id)
    shopper_service.create(plain.id)

    values = [args[0]["value"] for args in fake_gateway.calls_to("create_subscription")]
    assert values == [80.0, 135.0, 99.0, 150.0]


def test_explicit_plan_fields_override_order(db_session, shopper_service, fake_gateway):
    order = make_order(db_session, cycle="YEARLY")

    result = shopper_service.create(
        order.id,
        {"plan_name": "Clube Anual", "billing_type": "pix", "max_payments": 12, "cycle": "quarterly"},
    )

    assert result.success is True
    (payload,) = fake_gateway.calls_to("create_subscription")[0]
    assert payload["cycle"] == "QUARTERLY"
    assert payload["billingType"] == "PIX"
    assert payload["maxPayments"] == 12
    assert payload["description"] == "Clube Anual"


def test_order_lookup_failures(db_session, shopper_service, fake_gateway):
    assert shopper_service.create(None).status == 400

    missing = shopper_service.create(999)
    assert missing.status == 404
    assert missing.message == "Pedido 999 não encontrado"

    orphan = make_order(db_session)
    orphan.shopper_id = None
    db_session.add(orphan)
    db_session.commit()
    no_shopper = shopper_service.create(orphan.id)
    assert no_shopper.status == 400
    assert no_shopper.message == "Pedido não possui shopper associado"

    no_product = make_order(db_session, value=None)
    no_product.product_id = None
    db_session.add(no_product)
    db_session.commit()
    result = shopper_service.create(no_product.id)
    assert result.status == 404
    assert result.message == "Produto do pedido não encontrado"

    assert fake_gateway.calls == []


def test_one_subscription_per_order(db_session, shopper_service, fake_gateway):
    order = make_order(db_session)
    assert shopper_service.create(order.id).success

    duplicate = shopper_service.create(order.id)

    assert duplicate.status == 400
    assert duplicate.message == "Já existe uma assinatura para este pedido"
    assert len(fake_gateway.calls_to("create_subscription")) == 1


def test_order_can_be_subscribed_again_after_soft_delete(db_session, shopper_service, fake_gateway):
    order = make_order(db_session)
    first = shopper_service.create(order.id).data["subscription"]
    assert shopper_service.delete(first["id"]).success

    second = shopper_service.create(order.id)

    assert second.success is True
    assert second.data["subscription"]["id"] != first["id"]
    assert shopper_service.get_by_order_id(order.id).data["id"] == second.data["subscription"]["id"]


def test_invalid_holder_postal_code_never_reaches_gateway(db_session, shopper_service, fake_gateway):
    order = make_order(db_session)

    result = shopper_service.create(
        order.id,
        {"billing_type": "CREDIT_CARD", "billing_info": _holder(postalCode="00000000")},
    )

    assert result.success is False
    assert result.status == 400
    assert fake_gateway.calls == []


def test_card_subscription_sends_holder_with_shopper_tax_id(db_session, shopper_service, fake_gateway):
    order = make_order(db_session)

    result = shopper_service.create(order.id, {"billing_type": "CREDIT_CARD", "billing_info": CARD_BILLING})

    assert result.success is True, result.to_dict()
    (payload,) = fake_gateway.calls_to("create_subscription")[0]
    assert payload["billingType"] == "CREDIT_CARD"
    assert payload["remoteIp"] == "198.51.100.20"
    assert payload["creditCard"]["number"] == "5162306219378829"
    assert payload["creditCardHolderInfo"]["cpfCnpj"] == VALID_CPF
    assert payload["creditCardHolderInfo"]["postalCode"] == "89223005"


def test_card_without_remote_ip_is_rejected(db_session, shopper_service, fake_gateway):
    order = make_order(db_session)
    billing = {key: value for key, value in CARD_BILLING.items() if key != "remoteIp"}

    result = shopper_service.create(order.id, {"billing_type": "CREDIT_CARD", "billing_info": billing})

    assert result.status == 400
    assert fake_gateway.calls == []


def test_lookups_by_shopper_and_order(db_session, shopper_service):
    order = make_order(db_session)
    created = shopper_service.create(order.id).data["subscription"]

    by_shopper = shopper_service.get_by_shopper_id(order.shopper_id)
    assert [item["id"] for item in by_shopper.data] == [created["id"]]
    assert shopper_service.get_by_order_id(order.id).data["external_id"] == created["external_id"]
    assert shopper_service.get_by_order_id(order.id + 100).status == 404
    assert db_session.get(Order, order.id).external_id == created["external_id"]


def test_create_subscription_with_separate_plan_and_billing(db_session, shopper_service, fake_gateway):
    order = make_order(db_session)

    result = shopper_service.create_subscription(order.id, {"billing_type": "PIX"}, {"email": "outro@example.com"})

    assert result.success is True
    (customer,) = fake_gateway.calls_to("create_customer")[0]
    assert customer["email"] == "outro@example.com"
    (payload,) = fake_gateway.calls_to("create_subscription")[0]
    assert payload["billingType"] == "PIX"
