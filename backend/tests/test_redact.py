from starlette.requests import Request

from app.utils.redact import describe_tax_id, mask_middle, redact_sensitive
from app.utils.request_ip import get_client_ip


def test_redact_sensitive_masks_card_tax_id_and_ip_without_touching_original():
    payload = {
        "customer": "cus_1",
        "cpfCnpj": "52998224725",
        "remoteIp": "200.100.50.25",
        "creditCard": {"number": "4111111111111111", "ccv": "123", "holderName": "MARIA"},
        "creditCardToken": "tok_abc",
        "creditCardHolderInfo": {"cpfCnpj": "11222333000181", "name": "Maria"},
    }

    redacted = redact_sensitive(payload)

    assert redacted["creditCard"]["number"] == "4111********1111"
    assert redacted["creditCard"]["ccv"] == "***"
    assert redacted["creditCardToken"] == "***TOKEN***"
    assert redacted["remoteIp"] == "***.***.***.***"
    assert redacted["cpfCnpj"] == "529******25"
    assert redacted["creditCardHolderInfo"]["cpfCnpj"] == "112*********81"
    assert redacted["creditCardHolderInfo"]["name"] == "Maria"
    assert payload["creditCard"]["number"] == "4111111111111111"
    assert payload["cpfCnpj"] == "52998224725"


def test_mask_middle_short_values_are_fully_hidden():
    assert mask_middle("12345", 3, 2) == "*****"


def test_describe_tax_id_only_shows_length_and_last_digits():
    assert describe_tax_id("529.982.247-25") == "len=11 final=25"
    assert describe_tax_id(None) == "ausente"


def _request(headers: dict[str, str], client: tuple[str, int] | None = ("10.0.0.9", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/",
        "headers": [(key.lower().encode(), value.encode()) for key, value in headers.items()],
        "client": client,
    }
    return Request(scope)


def test_client_ip_prefers_first_forwarded_address():
    request = _request({"X-Forwarded-For": "187.10.20.30, 10.0.0.1"})
    assert get_client_ip(request) == "187.10.20.30"


def test_client_ip_strips_ipv4_mapped_prefix():
    assert get_client_ip(_request({}, client=("::ffff:189.1.2.3", 443))) == "189.1.2.3"
    assert get_client_ip(_request({})) == "10.0.0.9"
    assert get_client_ip(_request({}, client=None)) is None
