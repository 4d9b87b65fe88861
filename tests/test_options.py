from decimal import Decimal

import pytest

from storefront.model import OptionKind, OptionSchema, Product, ProductType, default_schema
from storefront.model.options import DEFAULT_OPTIONS

from conftest import JACKET_OPTIONS


@pytest.fixture
def schema():
    return OptionSchema.from_api("jacket", JACKET_OPTIONS)


def test_every_product_type_has_defaults():
    assert set(DEFAULT_OPTIONS) == set(ProductType)
    for t in ProductType:
        assert default_schema(t.value).product_type is t


def test_sash_and_cap_defaults():
    s = default_schema("sash_and_cap")
    assert [f.name for f in s.fields] == ["nameOnSash", "embroideryColor", "capFabric"]
    assert s.option("nameOnSash").kind is OptionKind.TEXT
    assert s.option("nameOnSash").max_length == 50


def test_unknown_product_type():
    with pytest.raises(ValueError):
        default_schema("spaceship")


def test_none_falls_back_to_defaults():
    assert OptionSchema.from_api("cap_only", None) == default_schema("cap_only")


def test_valid_selection(schema):
    assert schema.validate({"size": "M", "embroidery": "ANNA"}) == []


def test_missing_required_option(schema):
    assert schema.validate({}) == ["size is required"]


def test_unknown_option_and_bad_choice(schema):
    errors = schema.validate({"size": "XXXL", "colour": "red"})
    assert "unknown option 'colour'" in errors
    assert any("not a valid choice for size" in e for e in errors)


def test_text_length_bound(schema):
    errors = schema.validate({"size": "M", "embroidery": "x" * 21})
    assert errors == ["embroidery must be at most 20 characters"]


def test_price_deltas_only_for_priced_choices(schema):
    assert schema.price_deltas({"size": "XL", "embroidery": "A"}) == {"size": Decimal("5.00")}
    assert schema.price_deltas({"size": "M"}) == {}


def test_round_trip_through_api_shape(schema):
    again = OptionSchema.from_api("jacket", schema.as_api())
    assert again == schema


def test_duplicate_option_names_rejected():
    raw = [{"optionName": "size", "optionType": "select"}, {"optionName": "size", "optionType": "text"}]
    with pytest.raises(ValueError):
        OptionSchema.from_api("jacket", raw)


def test_bad_option_type_rejected():
    with pytest.raises(ValueError):
        OptionSchema.from_api("jacket", [{"optionName": "size", "optionType": "checkbox"}])


def test_product_calculated_price(schema):
    p = Product(price=Decimal("100"))
    p.option_schema = schema
    assert p.product_type == "jacket"
    assert p.calculated_price({"size": "XL"}) == Decimal("105.00")
    assert p.calculated_price({"size": "L"}) == Decimal("100.00")


def test_product_without_options_uses_type_defaults():
    p = Product(price=Decimal("10"), product_type="kids", dynamic_options=[])
    assert p.option_schema == default_schema("kids")


def test_parse_accepts_a_member():
    assert ProductType.parse(ProductType.JACKET) is ProductType.JACKET
    assert OptionSchema.from_api(ProductType.JACKET, None) == default_schema("jacket")


def test_negative_choice_price_rejected():
    raw = [{"optionName": "size", "optionType": "select", "options": [{"value": "M", "price": -250}]}]
    with pytest.raises(ValueError):
        OptionSchema.from_api("jacket", raw)
