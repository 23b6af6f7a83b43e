"""
Domain Migration Validators

Input validation utilities for migration parameters.
"""

import re
from typing import Tuple


# Each label: 1-63 chars, alphanumeric, hyphens only inside the label
DOMAIN_LABEL = r'[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?'
DOMAIN_PATTERN = re.compile(rf'^{DOMAIN_LABEL}(\.{DOMAIN_LABEL})*$')
HOSTNAME_PATTERN = re.compile(rf'^{DOMAIN_LABEL}$')
EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
USERNAME_PATTERN = re.compile(r'^[a-zA-Z0-9._-]+$')


def validate_domain(domain: str) -> Tuple[bool, str]:
    """Validate domain name format.

    Args:
        domain: The domain to validate (e.g. 'corp.example.com')

    Returns:
        Tuple of (is_valid, message)
    """
    if not domain:
        return False, "Domain is required"

    if len(domain) > 253:
        return False, "Domain is longer than 253 characters"

    if not DOMAIN_PATTERN.match(domain):
        return False, "Invalid domain format (e.g., company.com, subdomain.company.com)"

    return True, "Valid domain format"


def validate_email(email: str) -> Tuple[bool, str]:
    """Validate email-shaped admin identity (user@domain.tld).

    Args:
        email: The identity to validate

    Returns:
        Tuple of (is_valid, message)
    """
    if not email:
        return False, "Email is required"

    if not EMAIL_PATTERN.match(email):
        return False, "Invalid email format (e.g., admin@company.com)"

    return True, "Valid email format"


def validate_hostname(hostname: str) -> Tuple[bool, str]:
    """Validate a short (single label) hostname.

    Args:
        hostname: The hostname to validate, without domain

    Returns:
        Tuple of (is_valid, message)
    """
    if not hostname:
        return False, "Hostname is required"

    if "." in hostname:
        return False, "Enter the short hostname only; the domain is appended automatically"

    if not HOSTNAME_PATTERN.match(hostname):
        return False, "Hostname must be 1-63 letters, digits or inner hyphens"

    return True, "Valid hostname"


def validate_username(username: str) -> Tuple[bool, str]:
    """Validate a bare admin username (the domain is appended later)."""
    if not username:
        return False, "Admin username cannot be empty"

    if not USERNAME_PATTERN.match(username):
        return False, "Username contains invalid characters"

    return True, "Valid username"
