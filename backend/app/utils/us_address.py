"""
US address and contact normalization for lookup results.

Handles:
- Two-letter state codes to full state names
- Stripping the "County" suffix from county names
- ZIP / ZIP+4 cleanup
- Placeholder values the lookup service sometimes returns instead of omitting a field
"""

import re
import unicodedata

STATE_NAMES = {
    "AL": "Alabama", "AK": "Alaska", "AZ": "Arizona", "AR": "Arkansas",
    "CA": "California", "CO": "Colorado", "CT": "Connecticut", "DE": "Delaware",
    "DC": "District of Columbia", "FL": "Florida", "GA": "Georgia", "HI": "Hawaii",
    "ID": "Idaho", "IL": "Illinois", "IN": "Indiana", "IA": "Iowa",
    "KS": "Kansas", "KY": "Kentucky", "LA": "Louisiana", "ME": "Maine",
    "MD": "Maryland", "MA": "Massachusetts", "MI": "Michigan", "MN": "Minnesota",
    "MS": "Mississippi", "MO": "Missouri", "MT": "Montana", "NE": "Nebraska",
    "NV": "Nevada", "NH": "New Hampshire", "NJ": "New Jersey", "NM": "New Mexico",
    "NY": "New York", "NC": "North Carolina", "ND": "North Dakota", "OH": "Ohio",
    "OK": "Oklahoma", "OR": "Oregon", "PA": "Pennsylvania", "RI": "Rhode Island",
    "SC": "South Carolina", "SD": "South Dakota", "TN": "Tennessee", "TX": "Texas",
    "UT": "Utah", "VT": "Vermont", "VA": "Virginia", "WA": "Washington",
    "WV": "West Virginia", "WI": "Wisconsin", "WY": "Wyoming",
}

_FULL_NAMES = {name.lower(): name for name in STATE_NAMES.values()}

PLACEHOLDERS = frozenset({
    "", "n/a", "na", "none", "null", "unknown", "not found", "not available",
    "not provided", "tbd", "-", "--", "?", "email@example.com", "full name",
    "company name", "phone number",
})

COUNTY_SUFFIX = re.compile(r"\s+(county|parish|borough)$", re.IGNORECASE)
ZIP_PATTERN = re.compile(r"\b(\d{5})(?:-(\d{4}))?\b")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")


def clean_text(value: object) -> str | None:
    """Strip and collapse whitespace. Returns None for empty or placeholder values."""
    if value is None:
        return None
    text = unicodedata.normalize("NFKC", str(value))
    text = re.sub(r"\s+", " ", text).strip().strip(",;")
    if text.lower() in PLACEHOLDERS:
        return None
    return text


def normalize_state(value: object) -> str | None:
    """Return the full state name ("TX" -> "Texas"). Unknown values pass through."""
    text = clean_text(value)
    if text is None:
        return None
    code = text.upper().replace(".", "")
    if code in STATE_NAMES:
        return STATE_NAMES[code]
    return _FULL_NAMES.get(text.lower(), text)


def normalize_county(value: object) -> str | None:
    """Drop the trailing "County" word ("Palm Beach County" -> "Palm Beach")."""
    text = clean_text(value)
    if text is None:
        return None
    return COUNTY_SUFFIX.sub("", text) or None


def normalize_zip(value: object) -> str | None:
    """Extract a 5-digit or ZIP+4 code."""
    text = clean_text(value)
    if text is None:
        return None
    match = ZIP_PATTERN.search(text)
    if not match:
        return None
    return f"{match.group(1)}-{match.group(2)}" if match.group(2) else match.group(1)


def normalize_email(value: object) -> str | None:
    """Lowercase and validate the shape of an email address."""
    text = clean_text(value)
    if text is None:
        return None
    text = text.removeprefix("mailto:").lower()
    return text if EMAIL_PATTERN.match(text) else None


def slugify(name: str) -> str:
    """Lowercase alphanumeric slug ("Sunset Village" -> "sunsetvillage")."""
    text = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode()
    return re.sub(r"[^a-z0-9]", "", text.lower())
