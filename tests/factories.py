"""Builders for domain objects used across the test suite."""

from datetime import date
from decimal import Decimal

from trade_kernel.domain.contract import Contract, ContractStatus
from trade_kernel.domain.inventory import Batch
from trade_kernel.domain.order import OrderLine
from trade_kernel.domain.values import Currency

TODAY = date(2024, 6, 1)
MANAGER_CREDENTIAL = "correct horse battery staple"
OMR = Currency("OMR")


def make_batch(material_id, number, day, quantity, cost, branch_id=None, month=1):
    return Batch(
        material_id=material_id,
        batch_number=number,
        purchase_date=date(2024, month, day),
        quantity_available=Decimal(str(quantity)),
        unit_cost=Decimal(str(cost)),
        branch_id=branch_id,
    )


def make_contract(
    rates,
    *,
    start=date(2024, 1, 1),
    end=date(2024, 12, 31),
    status=ContractStatus.ACTIVE,
    customer_id="CUST-1",
    contract_id="C-1",
):
    return Contract(
        contract_id=contract_id,
        customer_id=customer_id,
        start_date=start,
        end_date=end,
        status=status,
        rates=rates,
    )


def make_line(line_id, material_id, quantity, unit_price):
    return OrderLine(
        line_id=line_id,
        material_id=material_id,
        quantity=Decimal(str(quantity)),
        unit_price=Decimal(str(unit_price)),
    )
