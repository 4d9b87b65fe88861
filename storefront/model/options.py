# storefront/model/options.py
"""Per-product-type option schemas.

Every product belongs to a :class:`ProductType`; each type carries its own
list of :class:`OptionField` definitions that the buyer fills in when adding
the product to a cart. Select and radio fields may attach a price delta to
each choice.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from ..utils.money import D, round_money


class ProductType(str, Enum):
    SASH_AND_CAP = "sash_and_cap"
    JACKET = "jacket"
    GRADUATION_GOWN = "graduation_gown"
    SCHOOL_UNIFORM = "school_uniform"
    KIDS = "kids"
    CAP_ONLY = "cap_only"

    @classmethod
    def parse(cls, value) -> "ProductType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(t.value for t in cls)
            raise ValueError(f"productType must be one of: {allowed}")


class OptionKind(str, Enum):
    SELECT = "select"
    RADIO = "radio"
    TEXT = "text"
    NUMBER = "number"


@dataclass(frozen=True)
class OptionChoice:
    value: str
    label: str = ""
    price: Decimal = Decimal("0")

    def as_api(self):
        return {"value": self.value, "label": self.label or self.value, "price": float(self.price)}

    @classmethod
    def from_api(cls, raw) -> "OptionChoice":
        if isinstance(raw, str):
            return cls(value=raw, label=raw)
        if not isinstance(raw, dict):
            raise ValueError("option choice must be a string or an object")
        value = str(raw.get("value") or "").strip()
        if not value:
            raise ValueError("option choice value is required")
        price = round_money(raw.get("price") or 0)
        if price < 0:
            raise ValueError(f"option choice {value} has a negative price")
        return cls(value=value, label=str(raw.get("label") or value), price=price)


@dataclass(frozen=True)
class OptionField:
    name: str
    kind: OptionKind
    required: bool = False
    choices: tuple[OptionChoice, ...] = ()
    placeholder: str | None = None
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None

    def choice(self, value) -> OptionChoice | None:
        return next((c for c in self.choices if c.value == str(value)), None)

    def price_delta(self, value) -> Decimal:
        if self.kind not in (OptionKind.SELECT, OptionKind.RADIO):
            return Decimal("0")
        c = self.choice(value)
        return c.price if c else Decimal("0")

    def check(self, value) -> str | None:
        """Return an error message for ``value`` or None when it is acceptable."""
        if value is None or value == "":
            return f"{self.name} is required" if self.required else None

        if self.kind in (OptionKind.SELECT, OptionKind.RADIO):
            if self.choices and self.choice(value) is None:
                return f"{value!r} is not a valid choice for {self.name}"
        elif self.kind == OptionKind.NUMBER:
            try:
                D(value)
            except ValueError:
                return f"{self.name} must be a number"
        else:
            text = str(value)
            if self.min_length is not None and len(text) < self.min_length:
                return f"{self.name} must be at least {self.min_length} characters"
            if self.max_length is not None and len(text) > self.max_length:
                return f"{self.name} must be at most {self.max_length} characters"
            if self.pattern and not re.fullmatch(self.pattern, text):
                return f"{self.name} has an invalid format"
        return None

    def as_api(self):
        out = {
            "optionName": self.name,
            "optionType": self.kind.value,
            "required": self.required,
            "options": [c.as_api() for c in self.choices],
        }
        if self.placeholder:
            out["placeholder"] = self.placeholder
        validation = {k: v for k, v in (
            ("minLength", self.min_length), ("maxLength", self.max_length), ("pattern", self.pattern),
        ) if v is not None}
        if validation:
            out["validation"] = validation
        return out

    @classmethod
    def from_api(cls, raw) -> "OptionField":
        if not isinstance(raw, dict):
            raise ValueError("each dynamic option must be an object")
        name = str(raw.get("optionName") or raw.get("name") or "").strip()
        if not name:
            raise ValueError("optionName is required")
        try:
            kind = OptionKind(str(raw.get("optionType") or raw.get("kind") or "").strip().lower())
        except ValueError:
            raise ValueError(f"optionType of {name} must be one of: select, radio, text, number")
        validation = raw.get("validation") or {}
        return cls(
            name=name,
            kind=kind,
            required=bool(raw.get("required", False)),
            choices=tuple(OptionChoice.from_api(c) for c in (raw.get("options") or [])),
            placeholder=raw.get("placeholder"),
            min_length=validation.get("minLength"),
            max_length=validation.get("maxLength"),
            pattern=validation.get("pattern"),
        )


@dataclass(frozen=True)
class OptionSchema:
    product_type: ProductType
    fields: tuple[OptionField, ...] = ()

    def option(self, name) -> OptionField | None:
        return next((f for f in self.fields if f.name == name), None)

    def validate(self, selected) -> list[str]:
        selected = selected or {}
        if not isinstance(selected, dict):
            return ["selectedOptions must be an object"]
        errors = [f"unknown option {name!r}" for name in selected if self.option(name) is None]
        for f in self.fields:
            problem = f.check(selected.get(f.name))
            if problem:
                errors.append(problem)
        return errors

    def price_deltas(self, selected) -> dict[str, Decimal]:
        deltas = {}
        for name, value in (selected or {}).items():
            f = self.option(name)
            if f is None:
                continue
            delta = f.price_delta(value)
            if delta:
                deltas[name] = delta
        return deltas

    def as_api(self):
        return [f.as_api() for f in self.fields]

    @classmethod
    def from_api(cls, product_type, raw_fields) -> "OptionSchema":
        product_type = ProductType.parse(product_type)
        if raw_fields is None:
            return default_schema(product_type)
        if not isinstance(raw_fields, list):
            raise ValueError("dynamicOptions must be a list")
        fields = tuple(OptionField.from_api(r) for r in raw_fields)
        names = [f.name for f in fields]
        if len(names) != len(set(names)):
            raise ValueError("dynamicOptions contains duplicate option names")
        return cls(product_type=product_type, fields=fields)


# ---- defaults per product type ---------------------------------------------

def _choices(*values):
    return tuple(OptionChoice(value=v, label=v) for v in values)


_EMBROIDERY = _choices("gold", "silver", "black", "white", "red", "blue")
_NAME_ON_SASH = dict(placeholder="Name on the sash (two or three names)", min_length=2, max_length=50)

DEFAULT_OPTIONS: dict[ProductType, tuple[OptionField, ...]] = {
    ProductType.SASH_AND_CAP: (
        OptionField("nameOnSash", OptionKind.TEXT, required=True, **_NAME_ON_SASH),
        OptionField("embroideryColor", OptionKind.SELECT, required=True, choices=_EMBROIDERY),
        OptionField("capFabric", OptionKind.SELECT, required=True,
                    choices=_choices("cotton", "silk", "polyester", "wool")),
    ),
    ProductType.JACKET: (
        OptionField("size", OptionKind.SELECT, required=True,
                    choices=_choices("XS", "S", "M", "L", "XL", "2XL")),
    ),
    ProductType.GRADUATION_GOWN: (
        OptionField("size", OptionKind.SELECT, required=True,
                    choices=_choices("48", "50", "52", "54", "56", "58", "60")),
        OptionField("nameOnSash", OptionKind.TEXT, required=False, **_NAME_ON_SASH),
        OptionField("embroideryColor", OptionKind.SELECT, required=True, choices=_EMBROIDERY),
    ),
    ProductType.SCHOOL_UNIFORM: (
        OptionField("size", OptionKind.SELECT, required=True,
                    choices=_choices(*(str(n) for n in range(34, 56, 2)))),
    ),
    ProductType.KIDS: (
        OptionField("nameOnSash", OptionKind.TEXT, required=False, **_NAME_ON_SASH),
        OptionField("embroideryColor", OptionKind.SELECT, required=True, choices=_EMBROIDERY),
        OptionField("size", OptionKind.SELECT, required=True),
        OptionField("color", OptionKind.SELECT, required=True),
    ),
    ProductType.CAP_ONLY: (
        OptionField("capColor", OptionKind.SELECT, required=True,
                    choices=_choices("black", "navy", "white", "grey", "brown", "maroon")),
        OptionField("embroideryColor", OptionKind.SELECT, required=True, choices=_EMBROIDERY),
        OptionField("dandoshColor", OptionKind.SELECT, required=True, choices=_EMBROIDERY),
    ),
}


def default_schema(product_type) -> OptionSchema:
    product_type = ProductType.parse(product_type)
    return OptionSchema(product_type=product_type, fields=DEFAULT_OPTIONS[product_type])
