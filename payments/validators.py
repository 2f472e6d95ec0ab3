from django.conf import settings

DEFAULT_ALLOWED_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")
DEFAULT_MAX_BYTES = 5 * 1024 * 1024


class ProofValidationError(Exception):
    pass


def allowed_types():
    return tuple(getattr(settings, "PAYMENT_PROOF_ALLOWED_TYPES", DEFAULT_ALLOWED_TYPES))


def max_bytes():
    return getattr(settings, "PAYMENT_PROOF_MAX_BYTES", DEFAULT_MAX_BYTES)


def validate_proof_file(content_type, size):
    content_type = (content_type or "").lower()
    if content_type not in allowed_types():
        raise ProofValidationError("Invalid file type. Only JPEG, PNG, and WebP images are allowed.")
    if size is None or size <= 0:
        raise ProofValidationError("Uploaded file is empty.")
    if size > max_bytes():
        raise ProofValidationError(f"File too large. Maximum size is {max_bytes() // (1024 * 1024)}MB.")
