"""Tests for the checkout submission flow."""

import asyncio
import json
from decimal import Decimal

import pytest

from ECommerceStorefront.checkout import GENERIC_SUBMIT_ERROR, CheckoutFlow
from ECommerceStorefront.enums import CheckoutState
from ECommerceStorefront.exceptions import EmptyCart
from tests.helpers import VALID_CHECKOUT, make_product


@pytest.fixture
def navigations():
    return []


@pytest.fixture
def flow(ledger, api, navigations):
    return CheckoutFlow(ledger, api, confirmation_delay=0.01, on_complete=navigations.append)


def sent_order(server):
    return json.loads(server.order_requests[-1].content)


class TestSuccessfulCheckout:

    @pytest.mark.asyncio
    async def test_discounted_order_end_to_end(self, flow, ledger, server, navigations):
        ledger.add_item(make_product(1, name="Camera", price=1000))
        ledger.add_item(make_product(1, name="Camera", price=1000))
        ledger.apply_discount("aa2000")

        order = await flow.submit(VALID_CHECKOUT)

        body = sent_order(server)
        assert body["discountCode"] == "AA2000"
        assert body["subtotal"] == 2000
        assert body["discountAmount"] == 400
        assert body["total"] == 1600
        assert body["items"] == [{"id": 1, "name": "Camera", "price": 1000, "quantity": 2}]
        assert "cardNumber" not in body
        assert "cvv" not in body

        assert order.id == 1
        assert order.total == Decimal(1600)
        assert flow.state is CheckoutState.PLACED
        assert flow.order == order
        assert not ledger.is_empty

        await flow.wait_until_complete()

        assert ledger.is_empty
        assert ledger.applied_code == ""
        assert navigations == ["/"]

    @pytest.mark.asyncio
    async def test_no_code_leaves_discount_code_out(self, flow, ledger, server):
        ledger.add_item(make_product(1, price=500))

        await flow.submit(VALID_CHECKOUT)

        body = sent_order(server)
        assert "discountCode" not in body
        assert body["discountAmount"] == 0
        assert body["total"] == 500
        await flow.wait_until_complete()

    @pytest.mark.asyncio
    async def test_placed_flow_does_not_submit_again(self, flow, ledger, server):
        ledger.add_item(make_product(1))
        await flow.submit(VALID_CHECKOUT)

        assert not flow.can_submit
        assert await flow.submit(VALID_CHECKOUT) is None
        assert len(server.order_requests) == 1
        await flow.wait_until_complete()


class TestRejectedCheckout:

    @pytest.mark.asyncio
    async def test_empty_cart_raises(self, flow, server):
        with pytest.raises(EmptyCart):
            await flow.submit(VALID_CHECKOUT)

        assert server.order_requests == []

    @pytest.mark.asyncio
    async def test_invalid_fields_block_submission(self, flow, ledger, server):
        ledger.add_item(make_product(1))
        data = dict(VALID_CHECKOUT, email="not-an-email", cvv="12")

        assert await flow.submit(data) is None

        assert flow.field_errors == {"email": "Invalid email address", "cvv": "CVV must be 3-4 digits"}
        assert flow.state is CheckoutState.IDLE
        assert server.requests == []
        assert ledger.total_items == 1

    @pytest.mark.asyncio
    async def test_editing_a_field_clears_its_error(self, flow, ledger):
        ledger.add_item(make_product(1))
        await flow.submit(dict(VALID_CHECKOUT, city=""))

        flow.clear_field_error("city")

        assert flow.field_errors == {}

    @pytest.mark.asyncio
    async def test_api_failure_keeps_cart_and_reports_message(self, flow, ledger, server, navigations):
        ledger.add_item(make_product(1, price=1000))
        ledger.apply_discount("AA2000")
        server.fail_status = 500
        server.fail_body = {"error": "Database error"}

        assert await flow.submit(VALID_CHECKOUT) is None

        assert flow.state is CheckoutState.FAILED
        assert flow.submit_error == "Database error"
        assert ledger.total_items == 1
        assert ledger.applied_code == "AA2000"
        assert navigations == []

    @pytest.mark.asyncio
    async def test_failure_without_message_uses_client_default(self, flow, ledger, server):
        ledger.add_item(make_product(1))
        server.fail_status = 500
        server.fail_body = {}

        await flow.submit(VALID_CHECKOUT)

        assert flow.submit_error == "Failed to submit order"

    @pytest.mark.asyncio
    async def test_unreadable_order_response_uses_generic_text(self, flow, ledger, server):
        ledger.add_item(make_product(1))
        server.fail_status = 201
        server.fail_body = {"unexpected": True}

        assert await flow.submit(VALID_CHECKOUT) is None

        assert flow.state is CheckoutState.FAILED
        assert flow.submit_error == GENERIC_SUBMIT_ERROR
        assert ledger.total_items == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_releases_submit_guard(self, flow, ledger, server):
        ledger.add_item(make_product(1))
        server.crash = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await flow.submit(VALID_CHECKOUT)

        assert flow.state is CheckoutState.FAILED
        assert flow.can_submit
        assert flow.submit_error == GENERIC_SUBMIT_ERROR

        order = await flow.submit(VALID_CHECKOUT)

        assert order is not None
        assert len(server.order_requests) == 2
        await flow.wait_until_complete()

    @pytest.mark.asyncio
    async def test_retry_after_failure_succeeds(self, flow, ledger, server):
        ledger.add_item(make_product(1))
        server.down = True
        await flow.submit(VALID_CHECKOUT)
        assert flow.state is CheckoutState.FAILED

        server.down = False
        order = await flow.submit(VALID_CHECKOUT)

        assert order is not None
        assert flow.submit_error is None
        await flow.wait_until_complete()
        assert ledger.is_empty


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_second_submit_while_in_flight_is_ignored(self, flow, ledger, server):
        ledger.add_item(make_product(1))
        server.gate = asyncio.Event()

        first = asyncio.create_task(flow.submit(VALID_CHECKOUT))
        while not server.order_requests:
            await asyncio.sleep(0)
        assert flow.submitting

        assert await flow.submit(VALID_CHECKOUT) is None

        server.gate.set()
        assert (await first) is not None
        assert len(server.order_requests) == 1
        await flow.wait_until_complete()

    @pytest.mark.asyncio
    async def test_cancelled_submit_releases_guard(self, flow, ledger, server):
        ledger.add_item(make_product(1))
        server.gate = asyncio.Event()

        pending = asyncio.create_task(flow.submit(VALID_CHECKOUT))
        while not server.order_requests:
            await asyncio.sleep(0)
        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await pending

        assert not flow.submitting
        assert flow.can_submit
        assert ledger.total_items == 1

        server.gate.set()
        assert await flow.submit(VALID_CHECKOUT) is not None
        await flow.wait_until_complete()

    @pytest.mark.asyncio
    async def test_closed_flow_still_clears_cart_but_does_not_navigate(self, flow, ledger, server, navigations):
        ledger.add_item(make_product(1))
        server.gate = asyncio.Event()

        pending = asyncio.create_task(flow.submit(VALID_CHECKOUT))
        while not server.order_requests:
            await asyncio.sleep(0)
        flow.close()
        server.gate.set()

        assert (await pending) is not None
        assert ledger.is_empty
        assert navigations == []

    @pytest.mark.asyncio
    async def test_closed_during_confirmation_does_not_navigate(self, flow, ledger, navigations):
        ledger.add_item(make_product(1))
        await flow.submit(VALID_CHECKOUT)

        flow.close()
        await flow.wait_until_complete()

        assert ledger.is_empty
        assert navigations == []
