"""
NVP parameter mapping.

Each schema maps a developer-facing option name to the PayPal NVP key and a
function turning the option value into the string PayPal expects. List-valued
records (cart items, shipping options) get their position appended to every
key: L_PAYMENTREQUEST_0_NAME0, L_PAYMENTREQUEST_0_NAME1, ...
"""

import re
from collections.abc import Callable, Iterable, Mapping
from decimal import Decimal, InvalidOperation
from typing import Any, NamedTuple

from payments.errors import InvalidAmountError

AMOUNT_PATTERN = re.compile(r"^-?\d+\.\d{2}$")


class FieldSpec(NamedTuple):
    remote_key: str
    normalize: Callable[[Any], str]


def normalize_amount(value: Any) -> str:
    """
    Format a money value with exactly two decimals.

    Extra decimals are cut off, not rounded: "10.567" becomes "10.56".
    A decimal comma is accepted ("10,5" becomes "10.50").
    """
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        # str(1e-05) would give exponent notation
        try:
            text = format(Decimal(str(value)), "f")
        except InvalidOperation as exc:
            raise InvalidAmountError(f"Invalid amount: {value!r}") from exc
    else:
        text = str(value).strip()

    text = text.replace(",", ".", 1)

    # ".5" and "-.5" have no integer part
    sign = "-" if text.startswith("-") else ""
    if text[len(sign) :].startswith("."):
        text = f"{sign}0{text[len(sign):]}"

    point = text.find(".")
    if point == -1:
        text += ".00"
    else:
        decimals = len(text) - point - 1
        if decimals == 0:
            text += "00"
        elif decimals == 1:
            text += "0"
        elif decimals > 2:
            text = text[: point + 3]

    if not AMOUNT_PATTERN.match(text):
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    return text


def as_string(value: Any) -> str:
    return str(value)


def flag_with_default(default: int) -> Callable[[Any], str]:
    """
    Build a normalizer for 0/1 style flags.

    An explicit 0 is kept; only None and "" fall back to ``default``.
    """

    def normalize(value: Any) -> str:
        if value is None or value == "":
            value = default
        if isinstance(value, bool):
            value = int(value)
        return str(value)

    return normalize


def solution_type(value: Any) -> str:
    return "Mark" if value is True else "Sole"


PAYMENT_PARAMS: dict[str, FieldSpec] = {
    "email": FieldSpec("EMAIL", as_string),
    "description": FieldSpec("PAYMENTREQUEST_0_DESC", as_string),
    "invoice_number": FieldSpec("PAYMENTREQUEST_0_INVNUM", as_string),
    "custom": FieldSpec("PAYMENTREQUEST_0_CUSTOM", as_string),
    "action": FieldSpec("PAYMENTREQUEST_0_PAYMENTACTION", as_string),
    "return_url": FieldSpec("RETURNURL", as_string),
    "cancel_url": FieldSpec("CANCELURL", as_string),
    "callback_url": FieldSpec("CALLBACK", as_string),
    "callback_timeout": FieldSpec("CALLBACKTIMEOUT", as_string),
    "callback_version": FieldSpec("CALLBACKVERSION", as_string),
    "only_paypal_users": FieldSpec("SOLUTIONTYPE", solution_type),
    "brand_name": FieldSpec("BRANDNAME", as_string),
    "header_img_url": FieldSpec("HDRIMG", as_string),
    "logo_img_url": FieldSpec("LOGOIMG", as_string),
    "background_color": FieldSpec("PAYFLOWCOLOR", as_string),
    "border_color": FieldSpec("CARTBORDERCOLOR", as_string),
    "no_shipping": FieldSpec("NOSHIPPING", flag_with_default(1)),
    "allow_note": FieldSpec("ALLOWNOTE", flag_with_default(1)),
    "require_confirm_shipping": FieldSpec("REQCONFIRMSHIPPING", flag_with_default(0)),
    "offer_insurance": FieldSpec("OFFERINSURANCEOPTION", as_string),
    "currency": FieldSpec("PAYMENTREQUEST_0_CURRENCYCODE", as_string),
    "amount": FieldSpec("PAYMENTREQUEST_0_AMT", normalize_amount),
    "sub_total": FieldSpec("PAYMENTREQUEST_0_ITEMAMT", normalize_amount),
    "item_amount": FieldSpec("PAYMENTREQUEST_0_ITEMAMT", normalize_amount),
    "shipping_amount": FieldSpec("PAYMENTREQUEST_0_SHIPPINGAMT", normalize_amount),
    "tax_amount": FieldSpec("PAYMENTREQUEST_0_TAXAMT", normalize_amount),
    "max_amount": FieldSpec("MAXAMT", normalize_amount),
    "shipping_discount_amount": FieldSpec(
        "PAYMENTREQUEST_0_SHIPDISCAMT", normalize_amount
    ),
}

ITEM_PARAMS: dict[str, FieldSpec] = {
    "name": FieldSpec("L_PAYMENTREQUEST_0_NAME", as_string),
    "description": FieldSpec("L_PAYMENTREQUEST_0_DESC", as_string),
    "amount": FieldSpec("L_PAYMENTREQUEST_0_AMT", normalize_amount),
    "number": FieldSpec("L_PAYMENTREQUEST_0_NUMBER", as_string),
    "quantity": FieldSpec("L_PAYMENTREQUEST_0_QTY", as_string),
    "tax_amount": FieldSpec("L_PAYMENTREQUEST_0_TAXAMT", normalize_amount),
    "weight": FieldSpec("L_PAYMENTREQUEST_0_ITEMWEIGHTVALUE", normalize_amount),
    "weight_unit": FieldSpec("L_PAYMENTREQUEST_0_ITEMWEIGHTUNIT", as_string),
    "length": FieldSpec("L_PAYMENTREQUEST_0_ITEMLENGTHVALUE", normalize_amount),
    "length_unit": FieldSpec("L_PAYMENTREQUEST_0_ITEMLENGTHUNIT", as_string),
    "width": FieldSpec("L_PAYMENTREQUEST_0_ITEMWIDTHVALUE", normalize_amount),
    "width_unit": FieldSpec("L_PAYMENTREQUEST_0_ITEMWIDTHUNIT", as_string),
    "height": FieldSpec("L_PAYMENTREQUEST_0_ITEMHEIGHTVALUE", normalize_amount),
    "height_unit": FieldSpec("L_PAYMENTREQUEST_0_ITEMHEIGHTUNIT", as_string),
    "url": FieldSpec("L_PAYMENTREQUEST_0_ITEMURL", as_string),
}

SHIPPING_OPTION_PARAMS: dict[str, FieldSpec] = {
    "name": FieldSpec("L_SHIPPINGOPTIONNAME", as_string),
    "label": FieldSpec("L_SHIPPINGOPTIONLABEL", as_string),
    "amount": FieldSpec("L_SHIPPINGOPTIONAMOUNT", normalize_amount),
    "tax_amount": FieldSpec("L_TAXAMT", normalize_amount),
    "insurance_amount": FieldSpec("L_INSURANCEAMOUNT", normalize_amount),
    "default": FieldSpec("L_SHIPPINGOPTIONISDEFAULT", as_string),
}

CALLBACK_RESPONSE_PARAMS: dict[str, FieldSpec] = {
    "method": FieldSpec("METHOD", as_string),
    "currency": FieldSpec("CURRENCYCODE", as_string),
    "offer_insurance": FieldSpec("OFFERINSURANCEOPTION", as_string),
    "no_shipping_option_details": FieldSpec("NO_SHIPPING_OPTION_DETAILS", as_string),
}


def map_fields(
    options: Mapping[str, Any],
    schema: Mapping[str, FieldSpec],
    index: int | None = None,
) -> dict[str, str]:
    """
    Translate an options record into NVP parameters.

    Options missing from ``schema`` are ignored. When ``index`` is given
    (0 included) it is appended to every remote key.
    """
    params: dict[str, str] = {}
    for name, value in options.items():
        spec = schema.get(name)
        if spec is None:
            continue
        key = spec.remote_key if index is None else f"{spec.remote_key}{index}"
        params[key] = spec.normalize(value)
    return params


def map_indexed(
    records: Iterable[Mapping[str, Any]], schema: Mapping[str, FieldSpec]
) -> dict[str, str]:
    """Map a list of records, suffixing keys with each record's position."""
    params: dict[str, str] = {}
    for i, record in enumerate(records):
        params.update(map_fields(record, schema, i))
    return params
