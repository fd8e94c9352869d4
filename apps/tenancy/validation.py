"""
Attribute cleaning for occupier records.

Used by the ledger when placing an occupier and by the update service, so
both paths agree on what a valid occupier looks like.
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.utils.dateparse import parse_date

from apps.core.exceptions import ValidationError

# Fields an operator may set directly. Unit reference, move-out date and the
# active flag belong to the ledger.
EDITABLE_FIELDS = (
    'name',
    'email',
    'phone',
    'emergency_contact_name',
    'emergency_contact_phone',
    'move_in_date',
    'lease_start_date',
    'lease_end_date',
    'lease_terms',
    'rental_amount',
    'deposit_amount',
)

TEXT_FIELDS = ('name', 'email', 'phone', 'emergency_contact_name', 'emergency_contact_phone', 'lease_terms')
DATE_FIELDS = ('move_in_date', 'lease_start_date', 'lease_end_date')
AMOUNT_FIELDS = ('rental_amount', 'deposit_amount')

MAX_AMOUNT = Decimal('99999999.99')


def coerce_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        parsed = parse_date(str(value))
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValueError("Enter a valid date (YYYY-MM-DD)")
    return parsed


def _to_amount(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal('0')
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValueError("Enter a valid amount")
    if not amount.is_finite():
        raise ValueError("Enter a valid amount")
    if amount < 0:
        raise ValueError("Amount cannot be negative")
    if amount > MAX_AMOUNT:
        raise ValueError("Amount is too large")
    return amount.quantize(Decimal('0.01'))


def clean_occupier_attributes(
    attributes: Mapping[str, Any],
    *,
    partial: bool = False,
    existing: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Validate and normalise occupier attributes.

    With partial=True only the given keys are cleaned (updates); cross-field
    checks then use `existing` for the values that were not supplied.
    Raises ValidationError carrying every field problem at once.
    """
    errors: Dict[str, list] = {}
    cleaned: Dict[str, Any] = {}

    for key in attributes:
        if key not in EDITABLE_FIELDS:
            errors.setdefault(key, []).append("Unknown or read-only attribute")

    for key in EDITABLE_FIELDS:
        if key not in attributes:
            continue
        value = attributes[key]
        try:
            if key in DATE_FIELDS:
                cleaned[key] = coerce_date(value)
            elif key in AMOUNT_FIELDS:
                cleaned[key] = _to_amount(value)
            else:
                cleaned[key] = (str(value).strip() if value is not None else "")
        except ValueError as exc:
            errors.setdefault(key, []).append(str(exc))

    if 'email' in cleaned and cleaned['email']:
        try:
            validate_email(cleaned['email'])
        except DjangoValidationError:
            errors.setdefault('email', []).append("Enter a valid email address")

    if not partial or 'name' in cleaned:
        if not cleaned.get('name') and 'name' not in errors:
            errors.setdefault('name', []).append("Name is required")
    if not partial or 'move_in_date' in attributes:
        if cleaned.get('move_in_date') is None and 'move_in_date' not in errors:
            errors.setdefault('move_in_date', []).append("Move-in date is required")

    if not partial and cleaned.get('lease_start_date') is None and 'lease_start_date' not in errors:
        cleaned['lease_start_date'] = cleaned.get('move_in_date')
    if partial and 'lease_start_date' in cleaned and cleaned['lease_start_date'] is None:
        errors.setdefault('lease_start_date', []).append("Lease start date is required")

    merged = dict(existing or {})
    merged.update(cleaned)
    lease_start = merged.get('lease_start_date')
    lease_end = merged.get('lease_end_date')
    if (
        lease_start and lease_end and lease_end <= lease_start
        and 'lease_end_date' not in errors
    ):
        errors.setdefault('lease_end_date', []).append("Lease end date must be after the lease start date")

    move_in = merged.get('move_in_date')
    move_out = merged.get('move_out_date')
    if move_in and move_out and move_out < move_in and 'move_in_date' not in errors:
        errors.setdefault('move_in_date', []).append("Move-in date cannot be after the move-out date")

    if errors:
        first_field = next(iter(errors))
        raise ValidationError(errors[first_field][0], errors=errors)

    return cleaned
