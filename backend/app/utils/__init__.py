from app.utils.formatting import format_date, only_digits, valid_tax_id
from app.utils.redact import redact_sensitive
from app.utils.request_ip import get_client_ip

__all__ = [
    "format_date",
    "get_client_ip",
    "only_digits",
    "redact_sensitive",
    "valid_tax_id",
]
