"""
Centralized validators for the verification backend.
Includes validators for phone numbers, licence numbers and uploaded files.
"""
import os
import re

from django.core.exceptions import ValidationError
from PIL import Image, UnidentifiedImageError


# ============================
# Phone Number Validator (International Format)
# ============================

def validate_international_phone_number(value):
    """
    Validates international phone number format.
    Accepts formats with country code: +1234567890, +447700900123, etc.
    Length: 8-15 digits (excluding + sign)
    SECURITY: Rejects non-ASCII to prevent unicode bypass attacks.
    """
    # Remove spaces, dashes, and parentheses
    cleaned = re.sub(r'[\s\-()]', '', value)

    if not cleaned.isascii():
        raise ValidationError(
            "Phone number must contain only ASCII characters"
        )

    if not re.match(r'^\+?[1-9]\d{7,14}$', cleaned):
        raise ValidationError(
            "Phone number must be in international format with country code (e.g., +1234567890, +447700900123)"
        )

    # SECURITY: Return cleaned value, not original
    return cleaned


# ============================
# Business Licence Number Validator
# ============================

def validate_license_number(value):
    """
    Validates a business licence / registration number.
    Format: 3-50 characters (letters, numbers, hyphens, slashes allowed)
    SECURITY: Returns normalized (uppercase) value.
    """
    cleaned = value.strip().upper()

    if len(cleaned) < 3 or len(cleaned) > 50:
        raise ValidationError("Licence number must be between 3 and 50 characters")

    if not re.match(r'^[A-Z0-9\-/]+$', cleaned):
        raise ValidationError("Licence number must contain only letters, numbers, hyphens and slashes")

    return cleaned


# ============================
# File Upload Validators
# ============================

def sniff_image_content_type(fileobj):
    """
    Determine the real MIME type of an uploaded image from its bytes using Pillow.

    Returns:
        MIME type string (e.g. 'image/png'), or None if the bytes are not an image
    """
    position = fileobj.tell() if hasattr(fileobj, 'tell') else 0
    try:
        with Image.open(fileobj) as img:
            img.verify()
            return Image.MIME.get(img.format)
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        return None
    finally:
        fileobj.seek(position)  # Reset file pointer


def validate_safe_filename(value):
    """
    Validates that filename doesn't contain dangerous characters or path traversal attempts.
    Accepts a plain filename string.
    """
    filename = value.strip()

    # Check for path traversal
    if not filename or '..' in filename or '/' in filename or '\\' in filename:
        raise ValidationError("Filename contains invalid characters")

    dangerous_extensions = [
        '.exe', '.bat', '.cmd', '.sh', '.php', '.asp', '.aspx',
        '.jsp', '.js', '.py', '.rb', '.pl', '.cgi'
    ]

    file_ext = os.path.splitext(filename)[1].lower()
    if file_ext in dangerous_extensions:
        raise ValidationError(f"File extension '{file_ext}' is not allowed")

    return filename
