import re


class VCardError(Exception):
    pass


class UnrecognizedPropertyName(VCardError):
    pass


class InvalidPropertyValue(VCardError):
    pass


# BEGIN, VERSION and END are listed in RFC 6350 section 6.1 even though the
# ABNF does not name them; keeping them here keeps line dispatch uniform.
V4_PROPERTIES = (
    "BEGIN", "VERSION", "END", "SOURCE", "KIND", "FN", "N", "NICKNAME",
    "PHOTO", "BDAY", "ANNIVERSARY", "GENDER", "ADR", "TEL",
    "EMAIL", "IMPP", "LANG", "TZ", "GEO", "TITLE", "ROLE",
    "LOGO", "ORG", "MEMBER", "RELATED", "CATEGORIES",
    "NOTE", "PRODID", "REV", "SOUND", "UID", "CLIENTPIDMAP",
    "URL", "KEY", "FBURL", "CALADRURI", "CALURI", "XML",
)

KIND_VALUES = ("individual", "group", "org", "location")

# Properties that may carry a TYPE parameter
TYPE_PROPERTIES = (
    "FN", "NICKNAME", "PHOTO", "ADR", "TEL", "EMAIL",
    "IMPP", "LANG", "TZ", "GEO", "TITLE", "ROLE", "LOGO",
    "ORG", "RELATED", "CATEGORIES", "NOTE", "SOUND", "URL",
    "KEY", "FBURL", "CALADRURI", "CALURI",
)

TYPE_TEL_VALUES = ("text", "voice", "fax", "cell", "video", "pager", "textphone")

TYPE_RELATED_VALUES = (
    "contact", "acquaintance", "friend", "met",
    "co-worker", "colleague", "co-resident", "neighbor", "child", "parent",
    "sibling", "spouse", "kin", "muse", "crush", "date", "sweetheart", "me",
    "agent", "emergency",
)

VALUE_TYPES = (
    "text", "uri", "date", "time", "date-time", "date-and-or-time",
    "timestamp", "boolean", "integer", "float", "utc-offset", "language-tag",
)

X_NAME_RE = re.compile(r"[xX]-[a-zA-Z0-9-]+")
# Leading zero is tolerated ("01").
PREF_RE = re.compile(r"0?[1-9]|[1-9][0-9]")
PID_RE = re.compile(r"[0-9](?:\.[0-9])?")
SORT_AS_RE = re.compile(r'[^\r\n\t\v\a":;]+|"[^\r\n\t\v\a]+"')
GEO_RE = re.compile(r'"[a-zA-Z][a-zA-Z0-9+.-]*:[^"\r\n]+"')
MEDIATYPE_RE = re.compile(r"[a-zA-Z0-9!#$&.+^_-]+/[a-zA-Z0-9!#$&.+^_-]+(?:;.+)?")

# Accepted as-is
FREE_PARAMS = ("language", "altid", "tz")


def is_x_name(s: str) -> bool:
    return X_NAME_RE.fullmatch(s) is not None


def is_v4_property(name: str) -> bool:
    return name.upper() in V4_PROPERTIES


def _check_type(prop_name: str, value: str) -> bool:
    if prop_name not in TYPE_PROPERTIES:
        return False
    token = value.lower()
    if token in TYPE_TEL_VALUES:
        return prop_name == "TEL"
    if token in TYPE_RELATED_VALUES:
        return prop_name == "RELATED"
    # "pref" is a dedicated parameter in version 4
    return token in ("work", "home") or is_x_name(value)


def check_param(prop_name: str, key: str, value: str) -> bool:
    """Whether parameter `key` with `value` may be set on property `prop_name`.

    `key` must already be lower-cased. Only used when building or mutating
    properties; parsed content is never re-validated.
    """
    match key:
        case "type":
            return _check_type(prop_name, value)
        case "value":
            return value.lower() in VALUE_TYPES or is_x_name(value)
        case "pref":
            return PREF_RE.fullmatch(value) is not None
        case "pid":
            return PID_RE.fullmatch(value) is not None
        case "calscale":
            if prop_name not in ("BDAY", "ANNIVERSARY"):
                return False
            return value.lower() == "gregorian" or is_x_name(value)
        case "sort-as":
            return SORT_AS_RE.fullmatch(value) is not None
        case "geo":
            return GEO_RE.fullmatch(value) is not None
        case "mediatype":
            return MEDIATYPE_RE.fullmatch(value) is not None
        case _ if key in FREE_PARAMS:
            return True
        case _:
            return is_x_name(key)


def check_create(name: str, value: str) -> str:
    """Validate a property built from scratch, return its canonical name."""
    name = name.upper()
    if name not in V4_PROPERTIES and not is_x_name(name):
        raise UnrecognizedPropertyName(
            f"Unrecognized property '{name}' for vCard version 4.0"
        )
    if name == "KIND" and value not in KIND_VALUES:
        raise InvalidPropertyValue(
            f"Value '{value}' is invalid for property 'KIND' in vCard version 4.0"
        )
    return name
