import re
from typing import Any, Dict, Mapping, Optional

from printflow.config import MAX_UPLOAD_BYTES
from printflow.models.order import CustomerInfo
from printflow.services.errors import ValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[0-9]{10,15}$")
UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')

PDF_CONTENT_TYPE = "application/pdf"


class CustomerInfoValidator:
    """Validation rules for the customer details step.

    Rules:
    - name, phone, email, course and class are required (whitespace only counts as empty)
    - phone must be 10-15 digits, optionally prefixed with +, once spaces and dashes are removed
    - email must look like local@domain.tld

    Errors are keyed by wire field name so a form can attach each message to its input.
    """

    def _add_error(self, errors: Dict[str, str], field: str, message: str) -> None:
        if field not in errors:
            errors[field] = message

    def errors(self, data: Mapping[str, Any]) -> Dict[str, str]:
        errors: Dict[str, str] = {}

        def text(field: str) -> str:
            value = data.get(field)
            return value.strip() if isinstance(value, str) else ""

        if not text("name"):
            self._add_error(errors, "name", "Name is required")

        phone = text("phone")
        if not phone:
            self._add_error(errors, "phone", "Phone number is required")
        elif not PHONE_PATTERN.match(re.sub(r"[\s-]", "", phone)):
            self._add_error(errors, "phone", "Please enter a valid phone number")

        email = text("email")
        if not email:
            self._add_error(errors, "email", "Email is required")
        elif not EMAIL_PATTERN.match(email):
            self._add_error(errors, "email", "Please enter a valid email address")

        if not text("course"):
            self._add_error(errors, "course", "Course is required")

        if not text("class"):
            self._add_error(errors, "class", "Class/Year is required")

        return errors

    def validate(self, data: Mapping[str, Any]) -> CustomerInfo:
        """Return a CustomerInfo built from trimmed values, or raise ValidationError."""
        errors = self.errors(data)
        if errors:
            raise ValidationError(errors)
        return CustomerInfo(
            name=data["name"].strip(),
            email=data["email"].strip(),
            phone=data["phone"].strip(),
            course=data["course"].strip(),
            class_=data["class"].strip(),
        )


def validate_document_file(
    filename: str,
    content_type: Optional[str],
    size: int,
    max_bytes: int = MAX_UPLOAD_BYTES,
) -> Optional[str]:
    """Return the first problem with an uploaded document, or None when it is acceptable."""
    if size > max_bytes:
        return f"File size exceeds maximum limit of {max_bytes // (1024 * 1024)}MB"
    if content_type != PDF_CONTENT_TYPE:
        return "File must be a PDF document"
    if UNSAFE_FILENAME_CHARS.search(filename or ""):
        return "File name contains invalid characters"
    return None
