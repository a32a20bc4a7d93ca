"""Checkout submission: validate the form, snapshot the cart, place one order."""
import asyncio
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from ECommerceStorefront.api import StorefrontApiClient
from ECommerceStorefront.enums import CheckoutState
from ECommerceStorefront.exceptions import ApiError, CheckoutValidationError, EmptyCart
from ECommerceStorefront.models import Order, OrderItemPayload, OrderPayload
from ECommerceStorefront.service import CartLedger
from ECommerceStorefront.validation import CheckoutForm, require_checkout

logger = logging.getLogger(__name__)

CONFIRMATION_DELAY_SECONDS = 3.0
HOME_ROUTE = "/"
GENERIC_SUBMIT_ERROR = "Failed to submit order. Try again."


def build_order_payload(ledger: CartLedger, form: CheckoutForm) -> OrderPayload:
    """Snapshot of the cart and the contact fields at submission time."""
    return OrderPayload(
        full_name=form.full_name,
        email=form.email,
        phone=form.phone,
        address=form.address,
        city=form.city,
        zip_code=form.zip_code,
        subtotal=ledger.subtotal,
        discount_amount=ledger.discount_amount,
        discount_code=ledger.applied_code or None,
        total=ledger.total,
        items=[
            OrderItemPayload(
                id=item.product.id,
                name=item.product.name,
                price=item.product.price,
                quantity=item.quantity,
            )
            for item in ledger.items
        ],
    )


class CheckoutFlow:
    """Drives one checkout page: IDLE -> SUBMITTING -> PLACED or FAILED.

    After an order is placed the cart is cleared once confirmation_delay seconds have
    passed and on_complete is called with the home route. A failed submission keeps
    the cart and the form as they were so the customer can retry.

    Args:
        ledger: The session cart
        api: Order collaborator
        confirmation_delay: Seconds the confirmation is shown before the cart is cleared
        on_complete: Navigation callback, receives the route to go to
    """

    def __init__(self, ledger: CartLedger, api: StorefrontApiClient,
                 confirmation_delay: float = CONFIRMATION_DELAY_SECONDS,
                 on_complete: Optional[Callable[[str], Any]] = None):
        self._ledger = ledger
        self._api = api
        self._confirmation_delay = confirmation_delay
        self._on_complete = on_complete
        self._completion: Optional[asyncio.Task] = None
        self._detached = False
        self.state = CheckoutState.IDLE
        self.field_errors: Dict[str, str] = {}
        self.submit_error: Optional[str] = None
        self.order: Optional[Order] = None

    @property
    def submitting(self) -> bool:
        return self.state is CheckoutState.SUBMITTING

    @property
    def can_submit(self) -> bool:
        return not self.submitting and self.state is not CheckoutState.PLACED

    def clear_field_error(self, field: str) -> None:
        """Called when the customer edits a field that had an error."""
        self.field_errors.pop(field, None)

    async def submit(self, form_data: Mapping[str, Any]) -> Optional[Order]:
        """Validate form_data and place the order.

        Returns the placed order, or None when nothing was placed: the form was
        invalid, the API rejected the order, or a submission is already in flight.

        Raises:
            EmptyCart: If the cart has no items
        """
        if not self.can_submit:
            logger.debug("Ignoring checkout submit while another is in flight or done")
            return None
        if self._ledger.is_empty:
            raise EmptyCart("Add items to your cart before checking out.")

        try:
            form = require_checkout(form_data)
        except CheckoutValidationError as e:
            self.field_errors = e.field_errors
            return None

        self.field_errors = {}
        self.submit_error = None
        self.state = CheckoutState.SUBMITTING
        payload = build_order_payload(self._ledger, form)
        try:
            order = await self._api.submit_order(payload)
        except (ApiError, ValueError) as e:
            message = getattr(e, "message", "") or GENERIC_SUBMIT_ERROR
            logger.warning(f"Order submission failed: {message}")
            if not self._detached:
                self.submit_error = message
                self.state = CheckoutState.FAILED
            return None
        except BaseException:
            # Cancelled or unexpected failure: the guard must not stay held.
            logger.exception("Order submission aborted")
            self.submit_error = GENERIC_SUBMIT_ERROR
            self.state = CheckoutState.FAILED
            raise

        logger.info(f"Order {order.id} placed for {payload.total}")
        if self._detached:
            # Nobody is looking at the confirmation, but the order exists.
            self._ledger.clear()
            return order
        self.order = order
        self.state = CheckoutState.PLACED
        self._completion = asyncio.create_task(self._complete_after_delay())
        return order

    async def _complete_after_delay(self) -> None:
        await asyncio.sleep(self._confirmation_delay)
        self._ledger.clear()
        if self._on_complete is not None and not self._detached:
            self._on_complete(HOME_ROUTE)

    async def wait_until_complete(self) -> None:
        """Wait for the post-confirmation cart clear, if one is pending."""
        if self._completion is not None:
            await self._completion

    def close(self) -> None:
        """The checkout view is gone; late results no longer update this flow."""
        self._detached = True
