from enum import StrEnum, auto
import logging
import re

from typing import Iterator, Self

from backends import FileBackend
from validation import V4_PROPERTIES, VCardError
from vcardutil import CRLF, Prop, Shape, content_lines

logger = logging.getLogger("vcf4.vcard")

CARD_RE = re.compile(r"BEGIN:VCARD.+?END:VCARD", re.DOTALL)

# Properties stored as structured values on the card
STRUCTURED_NAMES = {"ADR": Shape.address, "N": Shape.name}


class MalformedCardStructure(VCardError):
    pass


class AssemblerState(StrEnum):
    start = auto()
    in_body = auto()
    done = auto()


class CardAssembler:
    """Feeds unfolded content lines into a card until END is reached."""

    def __init__(self, card: "Card"):
        self.card = card
        self.state = AssemblerState.start

    def feed(self, line: str) -> bool:
        """Consume one line, return False once the card is complete."""
        match self.state:
            case AssemblerState.start:
                self._begin(line)
            case AssemblerState.in_body:
                self._body(line)
            case AssemblerState.done:
                logger.debug("Ignoring line after END: %r", line)
        return self.state is not AssemblerState.done

    def _begin(self, line: str):
        prop = Prop.parse_line(line)
        if prop.name != "BEGIN":
            raise MalformedCardStructure(f"BEGIN expected got {prop.name}")
        if prop.value != "VCARD":
            raise MalformedCardStructure(
                f"BEGIN expected value VCARD got {prop.value}"
            )
        self.state = AssemblerState.in_body

    def _body(self, line: str):
        prop = Prop.parse_line(line)
        match prop.name:
            case "END":
                self.state = AssemblerState.done
            case "VERSION":
                self.card.version = prop.value
            case "BEGIN":
                logger.debug("Ignoring nested BEGIN:%s", prop.value)
            case name if name in STRUCTURED_NAMES:
                self.card.append(prop.upgrade(STRUCTURED_NAMES[name]))
            case name if name in V4_PROPERTIES:
                self.card.append(prop)
            case _:
                logger.debug("Dropping unsupported property %s", prop.name)

    def consume(self, lines: list[str]):
        for line in lines:
            if not self.feed(line):
                break


class Card:
    def __init__(self, version: str = "4.0"):
        self.version = version
        self._props: list[Prop] = []

    @classmethod
    def fromstr(cls, s: str) -> Self:
        """Build a card from a BEGIN:VCARD ... END:VCARD text block."""
        lines = content_lines(s)
        if not lines:
            raise MalformedCardStructure("Empty vCard text")
        card = cls()
        CardAssembler(card).consume(lines)
        return card

    def version_number(self) -> float:
        try:
            return float(self.version)
        except ValueError:
            return 0.0

    def append(self, prop: Prop):
        self._props.append(prop)

    def properties(self, name: str) -> list[Prop]:
        name = name.upper()
        return [p for p in self._props if p.name == name]

    def value(self, name: str) -> str:
        """Value of property `name`, preferring the one with pref 1.

        Returns an empty string if the card has no such property.
        """
        props = self.properties(name)
        if not props:
            return ""
        for prop in props:
            if prop.pref() == 1:
                return prop.value
        return props[0].value

    def fn(self) -> str | None:
        props = self.properties("FN")
        return props[0].value if props else None

    def names(self) -> list[str]:
        return list(dict.fromkeys(p.name for p in self._props))

    def __len__(self):
        return len(self._props)

    def __iter__(self) -> Iterator[Prop]:
        return iter(self._props)

    def __getitem__(self, index: int) -> Prop:
        return self._props[index]

    def __str__(self):
        lines = ["BEGIN:VCARD", f"VERSION:{self.version}"]
        lines.extend(str(p) for p in self._props)
        lines.append("END:VCARD")
        return "".join(l + CRLF for l in lines)


class CardCollection:
    def __init__(self):
        self._cards: list[Card] = []

    @classmethod
    def fromstr(cls, s: str) -> Self:
        collection = cls()
        for span in CARD_RE.findall(s):
            collection.append(Card.fromstr(span))
        if not collection._cards:
            logger.warning("No BEGIN:VCARD ... END:VCARD block found")
        else:
            logger.info("Extracted %d cards", len(collection._cards))
        return collection

    @classmethod
    def from_file(cls, path: str, backend=None) -> Self:
        backend = backend or FileBackend()
        return cls.fromstr(backend.read(path))

    def save(self, path: str, overwrite: bool = False, backend=None) -> int:
        backend = backend or FileBackend()
        return backend.write(path, str(self), overwrite=overwrite)

    def append(self, card: Card):
        self._cards.append(card)

    def __len__(self):
        return len(self._cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(self._cards)

    def __getitem__(self, index: int) -> Card:
        return self._cards[index]

    def __str__(self):
        return "".join(str(card) for card in self._cards)
