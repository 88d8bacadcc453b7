"""
注文リポジトリのテスト（書き込みと読み取り）
"""

from uuid import uuid4

import pytest

from aether_orders import repository
from aether_orders.errors import NotFoundError
from aether_orders.models import OrderStatus, PricedLine
from aether_orders.money import Money


def _line(product_id, quantity, price):
    unit_price = Money.from_decimal_string(price)
    return PricedLine(
        product_id=product_id,
        quantity=quantity,
        unit_price=unit_price,
        line_total=unit_price.multiply_by_quantity(quantity),
    )


async def _create(session_factory, tenant_id, customer_id, lines):
    order_total = Money.zero()
    for line in lines:
        order_total = order_total + line.line_total
    async with session_factory() as session:
        async with session.begin():
            order_id = await repository.create_order_header(
                session, tenant_id, customer_id, order_total, OrderStatus.COMPLETED
            )
            await repository.create_order_items(session, order_id, lines)
    return order_id


@pytest.mark.asyncio
async def test_header_and_items_are_readable(session_factory, store, tenant_id):
    customer_id = await store.add_customer(tenant_id, "Ana Souza")
    mug = await store.add_product(tenant_id, "Caneca", stock=5)
    pen = await store.add_product(tenant_id, "Caneta", stock=5)

    order_id = await _create(
        session_factory, tenant_id, customer_id,
        [_line(mug, 2, "19.99"), _line(pen, 1, "5.00")],
    )

    async with session_factory() as session:
        header = await repository.get_order_header(session, tenant_id, order_id)
        items = await repository.get_order_items(session, order_id)

    assert header.id == order_id
    assert header.customer_name == "Ana Souza"
    assert header.total_amount == "44.98"
    assert header.status == "completed"
    assert len(header.created_date) == 10

    assert [(i.product_name, i.quantity, i.unit_price, i.total_price) for i in items] == [
        ("Caneca", 2, "19.99", "39.98"),
        ("Caneta", 1, "5.00", "5.00"),
    ]


@pytest.mark.asyncio
async def test_rolled_back_writes_are_not_visible(session_factory, store, tenant_id):
    customer_id = await store.add_customer(tenant_id)
    mug = await store.add_product(tenant_id, "Caneca", stock=5)

    with pytest.raises(RuntimeError):
        async with session_factory() as session:
            async with session.begin():
                order_id = await repository.create_order_header(
                    session, tenant_id, customer_id,
                    Money.from_decimal_string("1.00"), OrderStatus.COMPLETED,
                )
                await repository.create_order_items(session, order_id, [_line(mug, 1, "1.00")])
                raise RuntimeError("abort")

    assert await store.count("orders") == 0
    assert await store.count("order_items") == 0


@pytest.mark.asyncio
async def test_list_orders_newest_first_and_tenant_scoped(session_factory, store, tenant_id):
    customer_id = await store.add_customer(tenant_id)
    mug = await store.add_product(tenant_id, "Caneca", stock=50)
    first = await _create(session_factory, tenant_id, customer_id, [_line(mug, 1, "1.00")])
    second = await _create(session_factory, tenant_id, customer_id, [_line(mug, 2, "1.00")])

    other_tenant = uuid4()
    other_customer = await store.add_customer(other_tenant)
    other_product = await store.add_product(other_tenant, "Caneca", stock=5)
    await _create(session_factory, other_tenant, other_customer, [_line(other_product, 1, "1.00")])

    async with session_factory() as session:
        orders = await repository.list_orders(session, tenant_id)

    assert [o.id for o in orders] == [second, first]
    assert [o.total_amount for o in orders] == ["2.00", "1.00"]


@pytest.mark.asyncio
async def test_iter_orders_can_be_restarted(session_factory, store, tenant_id):
    customer_id = await store.add_customer(tenant_id)
    mug = await store.add_product(tenant_id, "Caneca", stock=5)
    await _create(session_factory, tenant_id, customer_id, [_line(mug, 1, "3.50")])

    async with session_factory() as session:
        first_pass = [o async for o in repository.iter_orders(session, tenant_id)]
        second_pass = [o async for o in repository.iter_orders(session, tenant_id)]

    assert first_pass == second_pass
    assert len(first_pass) == 1


@pytest.mark.asyncio
async def test_get_order_items_of_unknown_order(session_factory):
    async with session_factory() as session:
        with pytest.raises(NotFoundError):
            await repository.get_order_items(session, uuid4())


@pytest.mark.asyncio
async def test_get_order_header_of_another_tenant(session_factory, store, tenant_id):
    customer_id = await store.add_customer(tenant_id)
    mug = await store.add_product(tenant_id, "Caneca", stock=5)
    order_id = await _create(session_factory, tenant_id, customer_id, [_line(mug, 1, "1.00")])

    async with session_factory() as session:
        assert await repository.get_order_header(session, uuid4(), order_id) is None


@pytest.mark.asyncio
async def test_customer_exists(session_factory, store, tenant_id):
    customer_id = await store.add_customer(tenant_id)

    async with session_factory() as session:
        assert await repository.customer_exists(session, tenant_id, customer_id)
        assert not await repository.customer_exists(session, uuid4(), customer_id)
        assert not await repository.customer_exists(session, tenant_id, uuid4())
