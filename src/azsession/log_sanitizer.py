"""Log sanitization module for preventing secret leakage.

Redacts sensitive data before it reaches logs, error messages or the
terminal:
- Client secrets (assignments, env vars, `az login -p` arguments)
- Bearer tokens and Authorization headers
- Access tokens in JSON/query strings

Design Philosophy:
- Security first: err on side of over-redaction
- Pattern-based: not brittle keyword matching
"""

import re
from re import Pattern


class LogSanitizer:
    """Sanitize sensitive data from logs and error messages.

    All methods are class methods and can be called without instantiation.
    """

    REDACTED = "[REDACTED]"
    MASKED = "****"

    # Order matters: more specific patterns come first
    SECRET_PATTERNS: dict[str, Pattern] = {
        "client_secret_assignment": re.compile(
            r'(client[_-]?secret["\']?\s*[:=]\s*["\']?)([^\s"\'&,\)]+)',
            re.IGNORECASE,
        ),
        "client_secret_env": re.compile(
            r"((?:AZURE_CLIENT_SECRET|AZSESSION_CLIENT_SECRET)[\"']?\s*[:=]\s*[\"']?)([^\s\"'&,\)]+)",
            re.IGNORECASE,
        ),
        "az_password_flag": re.compile(r"((?:^|\s)(?:-p|--password)\s+)(\S+)"),
        "authorization_bearer": re.compile(
            r"(Authorization[\"']?\s*[:=]\s*[\"']?Bearer\s+)([^\s\"']+)", re.IGNORECASE
        ),
        "bearer": re.compile(r"(Bearer\s+)([A-Za-z0-9\-_\.=]{8,})"),
        "access_token": re.compile(
            r'(access[_-]?token["\']?\s*[:=]\s*["\']?)([^\s"\'&,\)]+)',
            re.IGNORECASE,
        ),
    }

    @classmethod
    def sanitize(cls, message: str) -> str:
        """Sanitize message by redacting sensitive patterns.

        Args:
            message: The message to sanitize

        Returns:
            Sanitized message with secrets replaced by [REDACTED]

        Examples:
            >>> LogSanitizer.sanitize("client_secret=abc123")
            'client_secret=[REDACTED]'
            >>> LogSanitizer.sanitize("az login --service-principal -u app -p s3cr3t")
            'az login --service-principal -u app -p [REDACTED]'
        """
        if not isinstance(message, str):
            message = str(message)

        result = message
        for pattern in cls.SECRET_PATTERNS.values():
            result = pattern.sub(r"\1" + cls.REDACTED, result)
        return result

    @classmethod
    def sanitize_command(cls, cmd: list[str]) -> str:
        """Render a subprocess argument list with secret arguments masked."""
        masked = []
        hide_next = False
        for arg in cmd:
            if hide_next:
                masked.append(cls.MASKED)
                hide_next = False
                continue
            masked.append(arg)
            if arg in ("-p", "--password"):
                hide_next = True
        return " ".join(masked)

    @classmethod
    def sanitize_exception(cls, exc: BaseException) -> str:
        """Sanitize exception message."""
        return cls.sanitize(str(exc))

    @classmethod
    def create_safe_error_message(cls, exc: BaseException, context: str = "") -> str:
        """Create a safe error message for display.

        Args:
            exc: The exception
            context: Optional context prefix (e.g., "Login failed")

        Returns:
            "<context>: <sanitized message>" or the sanitized message alone
        """
        safe = cls.sanitize_exception(exc)
        if context:
            return f"{context}: {safe}"
        return safe


__all__ = ["LogSanitizer"]
