"""Customer-side order validation, run before anything is sent to the backend."""

from __future__ import annotations

import random
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from storefront.common.cities import canonical_city

from .captcha import Captcha, generate_captcha
from .cart import CartLine

ADDRESS_MIN_LENGTH = 10
ADDRESS_MAX_LENGTH = 100

_PHONE_SEPARATORS = re.compile(r"[\s\-()]")
_PHONE_PATTERN = re.compile(r"^07[0-9]{8}$")
_REQUIRED = ("name", "phone", "address", "city")


@dataclass(frozen=True)
class CustomerDetails:
    name: str
    phone: str
    address: str
    city: str
    notes: str = ""
    location_coordinates: str = ""
    location_address: str = ""


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


@dataclass(frozen=True)
class ValidationResult:
    errors: tuple[FieldError, ...] = field(default_factory=tuple)

    @property
    def valid(self) -> bool:
        return not self.errors

    def messages(self) -> dict[str, str]:
        return {error.field: error.message for error in self.errors}


def normalize_phone(phone: str) -> str:
    return _PHONE_SEPARATORS.sub("", phone)


def phone_error(phone: str) -> str | None:
    cleaned = normalize_phone(phone)
    if len(cleaned) != 10:
        return "Phone number must be 10 digits"
    if not cleaned.startswith("07"):
        return "Phone number must start with 07"
    if not _PHONE_PATTERN.match(cleaned):
        return "Invalid Jordanian phone number"
    return None


def address_error(address: str) -> str | None:
    length = len(address.strip())
    if length < ADDRESS_MIN_LENGTH:
        return f"Address too short (minimum {ADDRESS_MIN_LENGTH} characters)"
    if length > ADDRESS_MAX_LENGTH:
        return f"Address too long (maximum {ADDRESS_MAX_LENGTH} characters)"
    return None


def city_error(city: str) -> str | None:
    if canonical_city(city) is None:
        return f"We do not deliver to {city.strip()!r}; choose a city from the list"
    return None


class OrderValidator:
    """Checks customer details, cart contents and the captcha answer.

    Holds the current :class:`Captcha`. Performs no I/O.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()
        self.captcha: Captcha = generate_captcha(self._rng)

    def regenerate_captcha(self) -> Captcha:
        self.captcha = generate_captcha(self._rng)
        return self.captcha

    def validate(
        self,
        details: CustomerDetails,
        cart_lines: Iterable[CartLine],
        captcha_answer: int | str | None,
    ) -> ValidationResult:
        errors: list[FieldError] = []

        missing = [name for name in _REQUIRED if not getattr(details, name).strip()]
        errors.extend(FieldError(name, f"{name.capitalize()} is required") for name in missing)

        checks = (("phone", phone_error), ("address", address_error), ("city", city_error))
        for name, check in checks:
            if name in missing:
                continue
            message = check(getattr(details, name))
            if message is not None:
                errors.append(FieldError(name, message))

        if not any(line.quantity >= 1 for line in cart_lines):
            errors.append(FieldError("cart", "Your cart is empty"))

        if not self.captcha.check(captcha_answer):
            errors.append(FieldError("captcha", "Please solve the math question correctly"))

        return ValidationResult(tuple(errors))
