import httpx
import pytest

from app.services.gateway import (
    GatewayClient,
    GatewayConfig,
    GatewayError,
    GatewayErrorKind,
    classify_gateway_error,
)


def _client(handler) -> GatewayClient:
    config = GatewayConfig(base_url="https://gateway.test/api/v3/", access_token="platform-token")
    return GatewayClient(config, transport=httpx.MockTransport(handler))


def test_request_sends_platform_token_and_returns_body():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["token"] = request.headers.get("access_token")
        return httpx.Response(200, json={"id": "cus_1", "name": "Maria"})

    body = _client(handler).request("GET", "customers/cus_1", params={"expand": "x"})

    assert body == {"id": "cus_1", "name": "Maria"}
    assert seen["url"] == "https://gateway.test/api/v3/customers/cus_1?expand=x"
    assert seen["token"] == "platform-token"


def test_per_call_headers_override_token_for_subaccounts():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["token"] = request.headers.get("access_token")
        return httpx.Response(200, json={"id": "sub_1"})

    _client(handler).create_subscription({"value": 10}, headers={"access_token": "subaccount-key"})

    assert seen["token"] == "subaccount-key"


def test_error_message_joins_gateway_descriptions():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={
                "errors": [
                    {"code": "invalid_cpfCnpj", "description": "O CPF/CNPJ informado é inválido"},
                    {"code": "invalid_value", "description": "Valor inválido"},
                ]
            },
        )

    with pytest.raises(GatewayError) as exc_info:
        _client(handler).create_customer({"name": "Maria"})

    error = exc_info.value
    assert error.message == "O CPF/CNPJ informado é inválido, Valor inválido"
    assert error.status == 400
    assert error.gateway_error["status"] == 400
    assert len(error.gateway_error["errors"]) == 2
    assert error.gateway_error["original_error"]


def test_error_message_falls_back_to_message_then_reason_phrase():
    def with_message(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "Token inválido"})

    def without_body(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="upstream down")

    with pytest.raises(GatewayError) as first:
        _client(with_message).get_customer("cus_1")
    with pytest.raises(GatewayError) as second:
        _client(without_body).get_customer("cus_1")

    assert first.value.message == "Token inválido"
    assert second.value.message == "Service Unavailable"
    assert second.value.status == 503


def test_network_failure_becomes_gateway_error_without_status():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GatewayError) as exc_info:
        _client(handler).delete_subscription("sub_1")

    assert exc_info.value.message == "Sem resposta do servidor Asaas"
    assert exc_info.value.status is None
    assert "connection refused" in exc_info.value.gateway_error["original_error"]


@pytest.mark.parametrize(
    "description, code, expected",
    [
        ("Não é possível criar cobrança: cliente removido.", "invalid_customer", GatewayErrorKind.CUSTOMER_REMOVED),
        ("The customer has been deleted", "invalid_customer", GatewayErrorKind.CUSTOMER_REMOVED),
        ("Para criar esta cobrança é necessário preencher o CPF ou CNPJ do cliente.", "invalid_customer", GatewayErrorKind.TAX_ID_INVALID),
        ("O CPF/CNPJ informado é inválido.", "invalid_cpfCnpj", GatewayErrorKind.TAX_ID_INVALID),
        ("O valor da cobrança deve ser maior que R$ 5,00.", "invalid_value", GatewayErrorKind.OTHER),
    ],
)
def test_classify_gateway_error(description, code, expected):
    error = GatewayError(description, status=400, errors=[{"code": code, "description": description}])
    assert classify_gateway_error(error) is expected


def test_subscription_endpoints_use_expected_methods_and_paths():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path))
        return httpx.Response(200, json={"id": "sub_9", "status": "ACTIVE"})

    client = _client(handler)
    assert client.get_subscription("sub_9")["status"] == "ACTIVE"
    client.update_subscription("sub_9", {"value": 20})
    client.delete_subscription("sub_9")

    assert seen == [
        ("GET", "/api/v3/subscriptions/sub_9"),
        ("PUT", "/api/v3/subscriptions/sub_9"),
        ("DELETE", "/api/v3/subscriptions/sub_9"),
    ]


def test_empty_success_body_returns_empty_dict():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200)

    assert _client(handler).delete_subscription("sub_1") == {}
