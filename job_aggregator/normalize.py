"""Text and field normalization shared by every source adapter.

Inputs are short snippets (titles, company names, descriptions returned by
job APIs), not documents, so markup is handled with two small regexes and an
explicit entity table rather than an HTML parser:

- tags are anything matching ``<[^>]*>``
- entities are ``&name;`` / ``&#NN;`` tokens; only those in ``HTML_ENTITIES``
  are decoded, anything else is left exactly as it arrived
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

_TAG_RE = re.compile(r"<[^>]*>")
_ENTITY_RE = re.compile(r"&[a-zA-Z0-9#]+;")
_SALARY_RANGE_RE = re.compile(r"(\d[\d,]*)\s*-\s*(\d[\d,]*)\s*(\w+)")
_FRACTION_RE = re.compile(r"(\.\d{1,6})\d*")

HTML_ENTITIES: dict[str, str] = {
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
    "&apos;": "'",
    "&nbsp;": " ",
    "&copy;": "©",
    "&reg;": "®",
    "&trade;": "™",
    "&hellip;": "...",
    "&mdash;": "—",
    "&ndash;": "–",
    "&lsquo;": "‘",
    "&rsquo;": "’",
    "&ldquo;": '"',
    "&rdquo;": '"',
    "&bull;": "•",
    "&para;": "¶",
    "&dagger;": "†",
    "&Dagger;": "‡",
    "&permil;": "‰",
    "&lsaquo;": "‹",
    "&rsaquo;": "›",
    "&euro;": "€",
    "&pound;": "£",
    "&yen;": "¥",
    "&cent;": "¢",
    "&curren;": "¤",
    "&brvbar;": "¦",
    "&sect;": "§",
    "&uml;": "¨",
    "&ordf;": "ª",
    "&laquo;": "«",
    "&not;": "¬",
    "&shy;": "",
    "&macr;": "¯",
    "&deg;": "°",
    "&plusmn;": "±",
    "&sup2;": "²",
    "&sup3;": "³",
    "&acute;": "´",
    "&micro;": "µ",
    "&middot;": "·",
    "&cedil;": "¸",
    "&sup1;": "¹",
    "&ordm;": "º",
    "&raquo;": "»",
    "&frac14;": "¼",
    "&frac12;": "½",
    "&frac34;": "¾",
    "&iquest;": "¿",
    "&Agrave;": "À",
    "&Aacute;": "Á",
    "&Acirc;": "Â",
    "&Atilde;": "Ã",
    "&Auml;": "Ä",
    "&Aring;": "Å",
    "&AElig;": "Æ",
    "&Ccedil;": "Ç",
    "&Egrave;": "È",
    "&Eacute;": "É",
    "&Ecirc;": "Ê",
    "&Euml;": "Ë",
    "&Igrave;": "Ì",
    "&Iacute;": "Í",
    "&Icirc;": "Î",
    "&Iuml;": "Ï",
    "&ETH;": "Ð",
    "&Ntilde;": "Ñ",
    "&Ograve;": "Ò",
    "&Oacute;": "Ó",
    "&Ocirc;": "Ô",
    "&Otilde;": "Õ",
    "&Ouml;": "Ö",
    "&times;": "×",
    "&Oslash;": "Ø",
    "&Ugrave;": "Ù",
    "&Uacute;": "Ú",
    "&Ucirc;": "Û",
    "&Uuml;": "Ü",
    "&Yacute;": "Ý",
    "&THORN;": "Þ",
    "&szlig;": "ß",
    "&agrave;": "à",
    "&aacute;": "á",
    "&acirc;": "â",
    "&atilde;": "ã",
    "&auml;": "ä",
    "&aring;": "å",
    "&aelig;": "æ",
    "&ccedil;": "ç",
    "&egrave;": "è",
    "&eacute;": "é",
    "&ecirc;": "ê",
    "&euml;": "ë",
    "&igrave;": "ì",
    "&iacute;": "í",
    "&icirc;": "î",
    "&iuml;": "ï",
    "&eth;": "ð",
    "&ntilde;": "ñ",
    "&ograve;": "ò",
    "&oacute;": "ó",
    "&ocirc;": "ô",
    "&otilde;": "õ",
    "&ouml;": "ö",
    "&divide;": "÷",
    "&oslash;": "ø",
    "&ugrave;": "ù",
    "&uacute;": "ú",
    "&ucirc;": "û",
    "&uuml;": "ü",
    "&yacute;": "ý",
    "&thorn;": "þ",
    "&yuml;": "ÿ",
}

# Source vocabulary -> canonical job type. Lookups are exact.
_JOB_TYPE_MAP: dict[str, str] = {
    "full_time": "full-time",
    "part_time": "part-time",
    "contract": "contract",
    "internship": "internship",
    "temporary": "temporary",
    "freelance": "freelance",
    "Full-time": "full-time",
    "Part-time": "part-time",
    "Contract": "contract",
    "Internship": "internship",
    "Temporary": "temporary",
    "Freelance": "freelance",
    "permanent": "full-time",
}

_WORK_LOCATION_MAP: dict[str, str] = {
    "remote": "remote",
    "hybrid": "hybrid",
    "onsite": "onsite",
    "office": "onsite",
    "work_from_home": "remote",
    "Remote": "remote",
    "Hybrid": "hybrid",
}


def strip_html_tags(text: str) -> str:
    return _TAG_RE.sub("", text)


def decode_html_entities(text: str) -> str:
    return _ENTITY_RE.sub(lambda m: HTML_ENTITIES.get(m.group(0), m.group(0)), text)


def clean_text(value: Any) -> str:
    """Decode entities, strip tags, trim. Encoded markup is removed as well."""
    if value is None:
        return ""
    return strip_html_tags(decode_html_entities(str(value))).strip()


def parse_salary_range(text: str | None) -> tuple[int, int, str] | None:
    """Extract ``(min, max, currency)`` from e.g. ``"50,000 - 65,000 GBP"``."""
    if not text:
        return None
    match = _SALARY_RANGE_RE.search(text)
    if not match:
        return None
    low, high, currency = match.groups()
    return int(low.replace(",", "")), int(high.replace(",", "")), currency


def to_int_salary(value: Any) -> int | None:
    if not value:
        return None
    try:
        return round(float(str(value).replace(",", "")))
    except ValueError:
        return None


def map_job_type(value: Any) -> str | None:
    if not value:
        return None
    return _JOB_TYPE_MAP.get(str(value).strip())


def map_work_location(value: Any) -> str | None:
    if not value:
        return None
    return _WORK_LOCATION_MAP.get(str(value).strip())


def format_timestamp(dt: datetime) -> str:
    """Canonical UTC form used for posted dates; sorts lexically."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_posted_date(value: Any) -> str:
    """Best-effort parse of a source date; returns "" when unusable."""
    if value is None or value == "":
        return ""
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return format_timestamp(datetime.fromtimestamp(value, tz=timezone.utc))
        except (OverflowError, OSError, ValueError):
            return ""
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # .NET style timestamps carry 7 fractional digits
    text = _FRACTION_RE.sub(lambda m: m.group(1), text, count=1)
    try:
        return format_timestamp(datetime.fromisoformat(text))
    except ValueError:
        return ""
