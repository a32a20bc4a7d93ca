"""Form validation for checkout and the back-office product editor.

Errors are reported per form field (camelCase, as the forms name them) with one
message per field. Nothing that fails validation is ever sent to the API.
"""
import re
from decimal import Decimal
from typing import Annotated, Any, Callable, Dict, List, Mapping, Optional, Tuple, Type, TypeVar

from pydantic import AfterValidator, AnyHttpUrl, ConfigDict, TypeAdapter, ValidationError
from pydantic.networks import validate_email
from pydantic_core import PydanticCustomError

from ECommerceStorefront.enums import ProductCategory
from ECommerceStorefront.exceptions import CheckoutValidationError
from ECommerceStorefront.models import Amount, ProductDraft, StorefrontModel

EXPIRY_PATTERN = re.compile(r"^\d{1,2}/\d{2}$")
CVV_PATTERN = re.compile(r"^\d{3,4}$")
MIN_CARD_DIGITS = 13

_url_adapter = TypeAdapter(AnyHttpUrl)

FormT = TypeVar("FormT", bound=StorefrontModel)


def _check(predicate: Callable[[Any], bool], message: str) -> AfterValidator:
    def validate(value):
        if not predicate(value):
            raise PydanticCustomError("invalid_field", message)
        return value
    return AfterValidator(validate)


def _at_least(length: int, message: str) -> AfterValidator:
    return _check(lambda value: len(value) >= length, message)


def _is_email(value: str) -> bool:
    try:
        validate_email(value)
    except PydanticCustomError:
        return False
    return True


def _is_card_number(value: str) -> bool:
    digits = re.sub(r"[\s-]", "", value)
    return digits.isdigit() and len(digits) >= MIN_CARD_DIGITS


def _is_image_url(value: str) -> bool:
    if value == "":
        return True
    try:
        _url_adapter.validate_python(value)
    except ValidationError:
        return False
    return True


def _is_category(value: str) -> bool:
    return value in {c.value for c in ProductCategory}


def field_errors(error: ValidationError, form_cls: Optional[Type[StorefrontModel]] = None) -> Dict[str, str]:
    """First message per field, keyed by the camelCase name used in the form.

    Errors raised while validating a default carry the attribute name in their
    location; those are mapped back to the field's alias.
    """
    aliases = {name: info.alias or name for name, info in form_cls.model_fields.items()} if form_cls else {}
    errors: Dict[str, str] = {}
    for err in error.errors():
        field = str(err["loc"][0]) if err["loc"] else "form"
        errors.setdefault(aliases.get(field, field), err["msg"])
    return errors


def validate_form(form_cls: Type[FormT], data: Mapping[str, Any]) -> Tuple[Optional[FormT], Dict[str, str]]:
    """Validate data against form_cls.

    Returns:
        (form, {}) when valid, (None, field errors) otherwise
    """
    try:
        return form_cls.model_validate(dict(data)), {}
    except ValidationError as e:
        return None, field_errors(e, form_cls)


class CheckoutForm(StorefrontModel):
    """Customer contact and payment fields entered at checkout."""
    model_config = ConfigDict(validate_default=True)

    full_name: Annotated[str, _at_least(2, "Full name must be at least 2 characters")] = ""
    email: Annotated[str, _check(_is_email, "Invalid email address")] = ""
    phone: Annotated[str, _at_least(8, "Please enter a valid phone number")] = ""
    address: Annotated[str, _at_least(5, "Address must be at least 5 characters")] = ""
    city: Annotated[str, _at_least(2, "City is required")] = ""
    zip_code: Annotated[str, _at_least(2, "Zip code is required")] = ""
    card_number: Annotated[str, _check(_is_card_number, "Enter a valid card number")] = ""
    expiry_date: Annotated[str, _check(EXPIRY_PATTERN.match, "Use MM/YY format")] = ""
    cvv: Annotated[str, _check(CVV_PATTERN.match, "CVV must be 3-4 digits")] = ""


class ProductForm(StorefrontModel):
    """Back-office product editor fields."""
    model_config = ConfigDict(validate_default=True)

    name: Annotated[str, _at_least(1, "Product name is required")] = ""
    category: Annotated[
        str,
        _at_least(1, "Category is required"),
        _check(_is_category, "Choose one of the product categories"),
    ] = ""
    price: Annotated[Amount, _check(lambda v: v >= 0, "Price must be 0 or greater")] = Decimal(0)
    description: Annotated[str, _at_least(1, "Short description is required")] = ""
    full_description: Annotated[str, _at_least(1, "Full description is required")] = ""
    image: Annotated[str, _check(_is_image_url, "Enter a valid image URL")] = ""
    installation_price: Annotated[
        Amount, _check(lambda v: v >= 0, "Installation price must be 0 or greater")
    ] = Decimal(0)
    specs: Optional[Dict[str, str]] = None
    inclusions: Optional[List[str]] = None
    supplier_id: Optional[int] = None
    supplier_name: Optional[str] = None

    def to_draft(self) -> ProductDraft:
        return ProductDraft(**self.model_dump())


def validate_checkout(data: Mapping[str, Any]) -> Tuple[Optional[CheckoutForm], Dict[str, str]]:
    return validate_form(CheckoutForm, data)


def require_checkout(data: Mapping[str, Any]) -> CheckoutForm:
    """Validated checkout form.

    Raises:
        CheckoutValidationError: With the per-field messages when any field is invalid
    """
    form, errors = validate_checkout(data)
    if form is None:
        raise CheckoutValidationError(errors)
    return form


def validate_product(data: Mapping[str, Any]) -> Tuple[Optional[ProductDraft], Dict[str, str]]:
    form, errors = validate_form(ProductForm, data)
    return (form.to_draft() if form is not None else None), errors
