from dataclasses import astuple, dataclass, field, fields, replace
from enum import StrEnum, auto
import json
import logging
import re

from typing import Self

from validation import (
    V4_PROPERTIES,
    VCardError,
    check_create,
    check_param,
)

logger = logging.getLogger("vcf4.vcardutil")

CRLF = "\r\n"
FOLD_WIDTH = 75
UNKNOWN_NAME = "UNKNOWN"

PROP_RE = re.compile(
    r"\s*(?:(?P<group>[a-zA-Z0-9-]+)\.)?"
    r"(?P<name>[a-zA-Z0-9-]+)"
    r'(?P<params>(?:;[a-zA-Z0-9-]+=(?:"[^"]*"|\\.|[^;:"\\])+)*)'
    r":(?P<value>.*)",
    re.DOTALL,
)
PARAM_RE = re.compile(r';([a-zA-Z0-9-]+)=((?:"[^"]*"|\\.|[^;:"\\])+)')
# One item of a comma separated parameter value; quoted and escaped commas
# are not separators.
PARAM_ITEM_RE = re.compile(r'(?:"[^"]*"|\\.?|[^,\\])+')
UNESCAPED_COMMA_RE = re.compile(r"(?<!\\),")
UNESCAPED_SEMICOLON_RE = re.compile(r"(?<!\\);")
FOLD_RE = re.compile(r"\r?\n ")
LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")


class UnparsableContentLine(VCardError):
    def __init__(self, line: str):
        super().__init__(f"Not a vCard content line: {line!r}")
        self.line = line


class TypeMismatch(VCardError):
    pass


def unfold(text: str) -> str:
    return FOLD_RE.sub("", text)


def fold(line: str) -> str:
    """Fold a content line into FOLD_WIDTH long segments.

    Segments are counted in code points so a multi-byte character is never
    split; for ASCII input this is the same as counting octets.
    """
    if len(line) <= FOLD_WIDTH:
        return line
    chunks = [line[i : i + FOLD_WIDTH] for i in range(0, len(line), FOLD_WIDTH)]
    return (CRLF + " ").join(chunks).strip()


def content_lines(text: str) -> list[str]:
    """Unfold `text` and split it into non-empty content lines."""
    return [l for l in LINE_BREAK_RE.split(unfold(text)) if l]


def encode_param_value(text: str) -> str:
    text = LINE_BREAK_RE.sub(r"\\n", text)
    text = text.replace("\t", r"\t")
    if not text.startswith('"'):
        text = text.replace(",", r"\,").replace(";", r"\;")
    return text


def decode_param_value(text: str) -> str:
    if not text.startswith('"'):
        text = text.replace(r"\;", ";").replace(r"\,", ",")
    return text.replace(r"\t", "\t").replace(r"\n", "\n")


def split_param_value(text: str) -> list[str]:
    return PARAM_ITEM_RE.findall(text)


def _to_int(text: str) -> int:
    m = re.match(r"\s*(\d+)", text.strip('"'))
    return int(m.group(1)) if m else 0


@dataclass(frozen=True)
class Recognized:
    pass


@dataclass(frozen=True)
class Unsupported:
    raw: str


class Shape(StrEnum):
    generic = auto()
    address = auto()
    name = auto()


def _components(value: str, n: int) -> list[str]:
    parts = UNESCAPED_SEMICOLON_RE.split(value)[:n]
    return parts + [""] * (n - len(parts))


@dataclass
class Prop:
    group: str | None
    name: str
    value: str
    params: dict[str, str] = field(default_factory=dict)
    support: Recognized | Unsupported = field(default_factory=Recognized)
    shape: Shape = Shape.generic

    def __setattr__(self, attr, val):
        if attr in ("group", "name") and attr in self.__dict__:
            raise AttributeError(f"Property {attr} is read-only")
        super().__setattr__(attr, val)

    @classmethod
    def fromstr(cls, s: str) -> Self:
        """Parse one unfolded content line, raising on malformed input."""
        m = PROP_RE.fullmatch(s)
        if not m:
            raise UnparsableContentLine(s)
        return cls._from_match(m, s)

    @classmethod
    def parse_line(cls, s: str) -> Self:
        """Parse one unfolded content line, never raising.

        Lines that do not match the content line grammar become an
        unsupported placeholder property carrying the raw text.
        """
        m = PROP_RE.fullmatch(s)
        if not m or not m.group("name"):
            logger.debug("Unparsable content line: %r", s)
            return cls(None, UNKNOWN_NAME, "", support=Unsupported(s))
        return cls._from_match(m, s)

    @classmethod
    def _from_match(cls, m: re.Match, s: str) -> Self:
        name = m.group("name").upper()
        params: dict[str, str] = {}
        for key, val in PARAM_RE.findall(m.group("params")):
            key = key.lower()
            if key in params:
                params[key] += "," + val
            else:
                params[key] = val
        if name in V4_PROPERTIES:
            support = Recognized()
        else:
            logger.debug("Property %s is not a vCard 4.0 property", name)
            support = Unsupported(s)
        return cls(m.group("group"), name, m.group("value"), params, support)

    @classmethod
    def create(cls, name: str, value: str) -> Self:
        return cls(None, check_create(name, value), value)

    @property
    def unsupported(self) -> bool:
        return isinstance(self.support, Unsupported)

    @property
    def payload(self) -> "Address | Name | None":
        if self.shape is Shape.generic:
            return None
        return STRUCTURED[self.shape][1].from_value(self.value)

    def upgrade(self, shape: Shape) -> Self:
        """Return a copy of this property tagged with a structured shape."""
        if shape is not Shape.generic:
            expected = STRUCTURED[shape][0]
            if self.name != expected:
                raise TypeMismatch(f"Expecting {expected} got {self.name}")
        return replace(self, params=dict(self.params), shape=shape)

    def get_param(self, name: str) -> str | int | None:
        """Decoded value of parameter `name`, None if it is not set.

        Multi-valued parameters come back comma separated, e.g. "home,x-wild".
        PREF is returned as an int.
        """
        name = name.lower()
        try:
            val = self.params[name]
        except KeyError:
            return None
        if name == "pref":
            return _to_int(val)
        return decode_param_value(val)

    def set_param(self, name: str, value: str) -> bool:
        """Set parameter `name`, or append `value` if it is already set.

        Returns False if the parameter or its value is not allowed on this
        property for vCard 4.0.
        """
        key = name.lower()
        if not check_param(self.name, key, value):
            logger.debug("Rejected parameter %s=%r on %s", key, value, self.name)
            return False
        encoded = encode_param_value(value)
        if key in self.params:
            self.params[key] += "," + encoded
        else:
            self.params[key] = encoded
        return True

    def has_type(self, value: str) -> bool:
        if "type" not in self.params:
            return False
        raw = self.params["type"].replace('"', "")
        have = {v.lower() for v in UNESCAPED_COMMA_RE.split(raw)}
        return all(v.lower() in have for v in value.split(","))

    def pref(self) -> int:
        """Preference level, 1 for a legacy TYPE=pref, 0 if unset."""
        if "pref" in self.params:
            return _to_int(self.params["pref"])
        if self.has_type("pref"):
            return 1
        return 0

    def to_json(self) -> str:
        return json.dumps(
            {
                "group": self.group,
                "name": self.name,
                "value": self.value,
                "params": self.params,
                "shape": self.shape,
                "unsupported": self.unsupported,
            },
            indent=2,
        )

    def _params_str(self) -> str:
        out = []
        for k, v in self.params.items():
            items = split_param_value(v)
            if len(items) > 1:
                out.extend(f";{k}={item}" for item in items)
            else:
                out.append(f";{k}={v}")
        return "".join(out)

    def __str__(self):
        group = f"{self.group}." if self.group else ""
        return fold(f"{group}{self.name}{self._params_str()}:{self.value}")


@dataclass(frozen=True)
class Address:
    po_box: str = ""
    extended: str = ""
    street: str = ""
    city: str = ""
    region: str = ""
    zip: str = ""
    country: str = ""

    @classmethod
    def from_value(cls, value: str) -> Self:
        return cls(*_components(value, len(fields(cls))))

    @staticmethod
    def create(
        street: str,
        city: str,
        region: str,
        zip: str,
        country: str,
        po_box: str = "",
        extended: str = "",
    ) -> Prop:
        value = Address(po_box, extended, street, city, region, zip, country)
        return Prop.fromstr(f"ADR:{value}").upgrade(Shape.address)

    def __str__(self):
        return ";".join(astuple(self))


@dataclass(frozen=True)
class Name:
    surname: str = ""
    given: str = ""
    additional: str = ""
    prefix: str = ""
    suffix: str = ""

    @classmethod
    def from_value(cls, value: str) -> Self:
        return cls(*_components(value, len(fields(cls))))

    @staticmethod
    def create(
        surname: str,
        given: str = "",
        additional: str = "",
        prefix: str = "",
        suffix: str = "",
    ) -> Prop:
        value = Name(surname, given, additional, prefix, suffix)
        return Prop.fromstr(f"N:{value}").upgrade(Shape.name)

    def __str__(self):
        return ";".join(astuple(self))


STRUCTURED: dict[Shape, tuple[str, type[Address] | type[Name]]] = {
    Shape.address: ("ADR", Address),
    Shape.name: ("N", Name),
}
