def mask_email(email: str | None) -> str:
    """Mask an email address for logs: ``jane.doe@example.com`` -> ``j***@example.com``."""
    if not email:
        return "<empty>"
    local, sep, domain = email.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"
