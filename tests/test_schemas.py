from decimal import Decimal

import pytest
from pydantic import ValidationError

from models import Category
from schemas import ExpenseCreate, ExpenseUpdate, RegisterRequest


class TestExpenseCreate:

    def test_defaults(self):
        e = ExpenseCreate(title="Lunch", category="FOOD", amount="12.50")
        assert e.quantity == 1
        assert e.is_recurring is False
        assert e.tax_percent == 0
        assert e.discount == 0

    def test_category_is_normalized(self):
        assert ExpenseCreate(title="Bus", category=" travel ", amount=3).category is Category.TRAVEL

    def test_unknown_category_rejected(self):
        with pytest.raises(ValidationError):
            ExpenseCreate(title="Gift", category="GIFTS", amount=10)

    @pytest.mark.parametrize(
        "field, value",
        [
            ("amount", "-1"),
            ("amount", "1.234"),
            ("quantity", 0),
            ("tax_percent", "100.01"),
            ("discount", "-5"),
            ("title", "   "),
        ],
    )
    def test_out_of_range_rejected(self, field, value):
        data = {"title": "Rent", "category": "RENT", "amount": "800"}
        data[field] = value
        with pytest.raises(ValidationError):
            ExpenseCreate(**data)


class TestExpenseUpdate:

    def test_changes_only_include_supplied_fields(self):
        u = ExpenseUpdate(amount="20", category="utilities")
        assert u.changes() == {"amount": Decimal("20"), "category": Category.UTILITIES}

    def test_empty_update(self):
        assert ExpenseUpdate().changes() == {}

    def test_explicit_null_rejected(self):
        with pytest.raises(ValidationError):
            ExpenseUpdate(title=None)

    def test_camel_case_aliases_map_to_fields(self):
        u = ExpenseUpdate.model_validate({"taxPercent": "18", "isRecurring": True})
        assert u.changes() == {"tax_percent": Decimal("18"), "is_recurring": True}

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError):
            ExpenseUpdate.model_validate({"taxRate": "18"})


class TestRegisterRequest:

    def test_username_is_stripped(self):
        assert RegisterRequest(username="  alice ", password="pw").username == "alice"

    def test_password_over_bcrypt_limit_rejected(self):
        with pytest.raises(ValidationError):
            RegisterRequest(username="alice", password="é" * 40)
