"""
Input sanitization for user-supplied text.

Applied to display names, status lines and chat message content before they
are stored. Rejects:
- Null bytes
- Control characters (newlines/tabs allowed in message content only)
- Script/XSS payloads (basic detection)
"""
import re
from typing import Optional


class InputSanitizer:
    """Validates and sanitizes user input."""

    NULL_BYTE_PATTERN = re.compile(r'\x00')
    CONTROL_CHAR_PATTERN = re.compile(r'[\x00-\x08\x0b-\x0c\x0e-\x1f\x7f]')  # Except \t=0x09, \n=0x0a, \r=0x0d
    LINE_BREAK_PATTERN = re.compile(r'[\t\r\n]')
    SCRIPT_PATTERN = re.compile(r'<script|javascript:|onerror|onclick|<iframe|<embed', re.IGNORECASE)
    DISPLAY_NAME_PATTERN = re.compile(r"^[\w .'\-]+$", re.UNICODE)

    @staticmethod
    def sanitize_string(value: str, max_length: Optional[int] = None, allow_newlines: bool = False) -> str:
        """
        Sanitize string input.

        Args:
            value: Input string
            max_length: Optional max length
            allow_newlines: Allow \\t, \\n and \\r (message content)

        Returns:
            The input, unchanged

        Raises:
            ValueError: If input contains dangerous patterns
        """
        if not isinstance(value, str):
            raise ValueError("Input must be string")

        if InputSanitizer.NULL_BYTE_PATTERN.search(value):
            raise ValueError("Null bytes not allowed")

        if InputSanitizer.CONTROL_CHAR_PATTERN.search(value):
            raise ValueError("Control characters not allowed")

        if not allow_newlines and InputSanitizer.LINE_BREAK_PATTERN.search(value):
            raise ValueError("Line breaks not allowed")

        if InputSanitizer.SCRIPT_PATTERN.search(value):
            raise ValueError("Script/XSS patterns not allowed")

        if max_length and len(value) > max_length:
            raise ValueError(f"Input exceeds max length of {max_length}")

        return value

    @staticmethod
    def sanitize_display_name(value: str) -> str:
        """Display name: letters, digits, spaces and . ' - _ only."""
        sanitized = InputSanitizer.sanitize_string(value.strip(), max_length=64)
        if not sanitized:
            raise ValueError("Name is required")

        if not InputSanitizer.DISPLAY_NAME_PATTERN.match(sanitized):
            raise ValueError("Name contains unsupported characters")

        return sanitized

    @staticmethod
    def sanitize_status(value: str) -> str:
        return InputSanitizer.sanitize_string(value, max_length=255).strip()

    @staticmethod
    def sanitize_content(value: str, max_length: int) -> str:
        """Sanitize chat message content (newlines kept, trailing spaces per line dropped)."""
        sanitized = InputSanitizer.sanitize_string(value, max_length=max_length, allow_newlines=True)

        lines = [line.rstrip() for line in sanitized.split('\n')]
        sanitized = '\n'.join(lines).strip('\n')

        if not sanitized.strip():
            raise ValueError("Message cannot be empty")

        return sanitized
