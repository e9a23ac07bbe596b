from ledger.utils.money import round2, to_decimal
from ledger.utils.orders import request_order_snapshot

__all__ = ["round2", "to_decimal", "request_order_snapshot"]
