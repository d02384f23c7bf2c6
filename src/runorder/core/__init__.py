"""Test units, run order policies and order files."""

from runorder.core.order_file import OrderFileResult, read_order_file
from runorder.core.policy import RunOrderPolicy
from runorder.core.units import OrderedResult, TestUnit

__all__ = ["OrderFileResult", "OrderedResult", "RunOrderPolicy", "TestUnit", "read_order_file"]
