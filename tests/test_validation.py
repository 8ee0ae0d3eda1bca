from itertools import combinations

import pytest

from printflow.services.errors import ValidationError
from printflow.services.validation import CustomerInfoValidator, validate_document_file

REQUIRED = ("name", "email", "phone", "course", "class")


def test_valid_customer_info_is_trimmed(customer):
    customer["name"] = "  Ama Mensah "
    info = CustomerInfoValidator().validate(customer)
    assert info.name == "Ama Mensah"
    assert info.class_ == "Level 300"
    assert info.model_dump(by_alias=True)["class"] == "Level 300"


def test_bad_email_is_reported_on_email_only(customer):
    customer["email"] = "not-an-email"
    errors = CustomerInfoValidator().errors(customer)
    assert errors == {"email": "Please enter a valid email address"}


@pytest.mark.parametrize("missing", [
    combo for size in range(1, len(REQUIRED) + 1) for combo in combinations(REQUIRED, size)
])
def test_every_combination_of_missing_fields_is_refused(customer, missing):
    for field in missing:
        customer[field] = "   " if field == "course" else ""
    with pytest.raises(ValidationError) as exc:
        CustomerInfoValidator().validate(customer)
    assert set(exc.value.field_errors) == set(missing)


@pytest.mark.parametrize("phone", ["0241234567", "+233 24 123 4567", "024-123-4567", "233241234567890"])
def test_phone_numbers_accepted(customer, phone):
    customer["phone"] = phone
    assert CustomerInfoValidator().errors(customer) == {}


@pytest.mark.parametrize("phone", ["12345", "0241234567890123", "024 ABC 4567", "++233241234567"])
def test_phone_numbers_rejected(customer, phone):
    customer["phone"] = phone
    assert CustomerInfoValidator().errors(customer) == {"phone": "Please enter a valid phone number"}


def test_non_string_values_count_as_missing(customer):
    customer["name"] = None
    customer.pop("course")
    assert set(CustomerInfoValidator().errors(customer)) == {"name", "course"}


def test_pdf_within_limit_is_accepted():
    assert validate_document_file("notes.pdf", "application/pdf", 1024) is None


def test_oversized_file_is_rejected():
    assert "maximum limit of 50MB" in validate_document_file("big.pdf", "application/pdf", 50 * 1024 * 1024 + 1)


def test_non_pdf_is_rejected():
    assert validate_document_file("notes.docx", "application/msword", 10) == "File must be a PDF document"


def test_unsafe_file_name_is_rejected():
    assert validate_document_file('notes<1>.pdf', "application/pdf", 10) == "File name contains invalid characters"
