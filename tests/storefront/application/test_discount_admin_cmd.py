import json

import pytest
from protean.utils.globals import current_domain

from storefront.discount.management import DeleteDiscount, MarkDiscountUsed, UpdateDiscount
from storefront.discount.queries import get_discount, get_discount_by_code, list_discounts
from storefront.discount.repository import DiscountRepository
from storefront.errors import (
    AlreadyUsedByUser,
    DiscountInUse,
    DiscountNotFound,
    DuplicateDiscountCode,
    InvalidDiscountConfiguration,
)


class TestCreateDiscount:
    def test_code_is_stored_uppercase(self, make_discount):
        discount_id = make_discount(code="summer20")
        assert get_discount(discount_id).code == "SUMMER20"

    def test_duplicate_code_is_rejected_case_insensitively(self, make_discount):
        make_discount(code="SUMMER20")
        with pytest.raises(DuplicateDiscountCode):
            make_discount(code="Summer20")

    def test_store_rejects_a_code_that_slipped_past_the_lookup(self, monkeypatch, make_discount):
        make_discount(code="SUMMER20")
        monkeypatch.setattr(DiscountRepository, "find_by_code", lambda self, code: None)
        with pytest.raises(DuplicateDiscountCode):
            make_discount(code="summer20")
        assert len(list_discounts()) == 1

    def test_invalid_percentage(self, make_discount):
        with pytest.raises(InvalidDiscountConfiguration):
            make_discount(code="HUGE", value=150.0)

    def test_list_fields_are_parsed(self, make_discount):
        discount_id = make_discount(code="TEES", applicable_categories=json.dumps(["cat-tees"]))
        assert get_discount(discount_id).category_list == ["cat-tees"]


class TestUpdateDiscount:
    def test_partial_update(self, make_discount):
        discount_id = make_discount(code="SAVE10", value=10.0)
        current_domain.process(UpdateDiscount(discount_id=discount_id, value=15.0), asynchronous=False)

        discount = get_discount(discount_id)
        assert discount.value == 15.0
        assert discount.code == "SAVE10"

    def test_rename_to_existing_code(self, make_discount):
        make_discount(code="SAVE10")
        other_id = make_discount(code="SAVE20", value=20.0)
        with pytest.raises(DuplicateDiscountCode):
            current_domain.process(UpdateDiscount(discount_id=other_id, code="save10"), asynchronous=False)

    def test_unknown_discount(self):
        with pytest.raises(DiscountNotFound):
            current_domain.process(UpdateDiscount(discount_id="missing", value=5.0), asynchronous=False)


class TestDeleteDiscount:
    def test_unused_discount_is_deleted(self, make_discount):
        discount_id = make_discount()
        current_domain.process(DeleteDiscount(discount_id=discount_id), asynchronous=False)
        with pytest.raises(DiscountNotFound):
            get_discount(discount_id)

    def test_used_discount_cannot_be_deleted(self, make_discount):
        discount_id = make_discount(code="SAVE10")
        current_domain.process(MarkDiscountUsed(code="SAVE10", user_id="cust-001"), asynchronous=False)
        with pytest.raises(DiscountInUse):
            current_domain.process(DeleteDiscount(discount_id=discount_id), asynchronous=False)


class TestMarkDiscountUsed:
    def test_increments_usage(self, make_discount):
        make_discount(code="SAVE10")
        used = current_domain.process(MarkDiscountUsed(code="save10", user_id="cust-001"), asynchronous=False)
        assert used == 1
        assert get_discount_by_code("SAVE10").has_been_used_by("cust-001")

    def test_same_user_twice(self, make_discount):
        make_discount(code="SAVE10")
        current_domain.process(MarkDiscountUsed(code="SAVE10", user_id="cust-001"), asynchronous=False)
        with pytest.raises(AlreadyUsedByUser):
            current_domain.process(MarkDiscountUsed(code="SAVE10", user_id="cust-001"), asynchronous=False)
        assert get_discount_by_code("SAVE10").used_count == 1


class TestDiscountQueries:
    def test_lookup_by_code_ignores_case(self, make_discount):
        discount_id = make_discount(code="SAVE10")
        assert str(get_discount_by_code(" save10 ").id) == discount_id

    def test_unknown_code(self):
        with pytest.raises(DiscountNotFound):
            get_discount_by_code("NOPE")

    def test_active_only_listing(self, make_discount):
        make_discount(code="LIVE")
        make_discount(code="PAUSED", is_active=False)

        assert {d.code for d in list_discounts()} == {"LIVE", "PAUSED"}
        assert [d.code for d in list_discounts(active_only=True)] == ["LIVE"]
