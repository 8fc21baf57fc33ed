"""ipset management and egress gateway IP bookkeeping helpers."""

__version__ = "0.1.0"
__all__ = ["allocation", "gateway_status", "ipset", "ipset_runner"]