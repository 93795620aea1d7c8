"""HTTP resource server with paid report delivery and background distribution."""

from .headers import decode_payment_header, decode_payment_required, encode_header
from .payment import create_payment_wrapper, create_resource_server
from .server import create_app

__all__ = [
    "create_app",
    "create_payment_wrapper",
    "create_resource_server",
    "decode_payment_header",
    "decode_payment_required",
    "encode_header",
]
