import re


def redact_pii(message: str) -> str:
    """Redact personally identifiable information from log messages.

    Masks submitter emails, phone numbers, client IPs and SMTP credentials
    when LOG_REDACT_PII is enabled.
    """
    if not isinstance(message, str):
        return str(message)

    # Emails: user@example.com -> u***@example.com
    message = re.sub(
        r"[\w.+-]+@[\w.-]+\.\w+",
        lambda m: m.group()[0] + "***@" + m.group().split("@")[1],
        message,
    )

    # IPs (IPv4): 192.168.1.100 -> 192.168.1.***
    message = re.sub(
        r"\b(\d{1,3}\.\d{1,3}\.\d{1,3}\.)\d{1,3}\b", r"\1***", message
    )

    # Phone numbers: +27 11 555 0100, (011) 555-0100, 0821234567
    message = re.sub(
        r"(?<![\w.])(?:\+\d|\(?0\d)[\d\s().-]{7,}\d\b",
        "[PHONE_REDACTED]",
        message,
    )

    # Password values in common patterns
    message = re.sub(
        r'(password|passwd|pwd|pass|secret)["\']?\s*[:=]\s*["\']?[^"\'&\s]+',
        r"\1=[REDACTED]",
        message,
        flags=re.IGNORECASE,
    )

    return message
