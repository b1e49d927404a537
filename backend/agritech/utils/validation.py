"""
Input Validation Utilities
===========================

Common validation functions for device data and user inputs.
"""

import re
import uuid


MAC_PATTERN = re.compile(r'^([0-9A-Fa-f]{2}[:-]){5}([0-9A-Fa-f]{2})$')

DEVICE_TYPES = (
    "Controlled environments",
    "Plants",
    "Soil",
    "Climate",
    "Large-scale farming",
    "home gardens",
    "Manual",
    "Automated",
    "Delicate",
    "Tough",
    "Outdoor",
    "Indoor",
)


def validate_uuid(value: str) -> bool:
    """
    Validate an ID (UUID format).

    Args:
        value: ID string (e.g., "3f2b8c1e-...")

    Returns:
        True if valid UUID, False otherwise
    """
    try:
        uuid.UUID(str(value))
        return True
    except ValueError:
        return False


def validate_mac_address(mac: str) -> bool:
    """
    Validate a MAC address.

    Both separators are accepted: "AA:BB:CC:DD:EE:FF" and "AA-BB-CC-DD-EE-FF".

    Args:
        mac: MAC address string

    Returns:
        True if valid, False otherwise
    """
    return bool(MAC_PATTERN.match(mac or ""))


def validate_device_type(device_type: str) -> bool:
    """Check a device category tag against the known list."""
    return device_type in DEVICE_TYPES


def sanitize_filename(name: str) -> str:
    """
    Sanitize a name so it can be used inside a file name.

    Args:
        name: Original name (device or group name)

    Returns:
        Lowercase, dash-separated name safe for the filesystem
    """
    # Anything that isn't a letter or a digit becomes a dash
    sanitized = re.sub(r'[^a-zA-Z0-9]+', '-', name or "")
    sanitized = sanitized.strip('-').lower()
    # Limit length
    return sanitized[:100] or "report"
