import json

import pytest

from validation import InvalidPropertyValue, UnrecognizedPropertyName
from vcardutil import (
    FOLD_WIDTH,
    UNKNOWN_NAME,
    Address,
    Name,
    Prop,
    Recognized,
    Shape,
    TypeMismatch,
    UnparsableContentLine,
    Unsupported,
    content_lines,
    decode_param_value,
    encode_param_value,
    fold,
    unfold,
)

ADR_LINE = (
    'ADR;GEO="geo:12.3457,78.910";'
    'LABEL="Mr. John Q. Public; Esq.\\nMail Drop: TNE QB\\n123 Main Street\\n'
    'Any Town, CA  91921-1234 U.S.A.";TYPE=HOME;TYPE=POSTAL;TYPE=pref:'
    ";;123 Main Street;Any Town;CA;91921-1234;U.S.A."
)


def test_unfold():
    assert unfold("NOTE:abc\r\n def\n ghi") == "NOTE:abcdefghi"
    # Only the first space is the continuation marker
    assert unfold("NOTE:abc\r\n  def") == "NOTE:abc def"


def test_fold_short_line_unchanged():
    line = "FN:" + "x" * (FOLD_WIDTH - 3)
    assert fold(line) == line


@pytest.mark.parametrize(
    "line",
    [
        "NOTE:" + "abcdefghij" * 30,
        "NOTE:" + "é" * 200,
        "NOTE:" + "aé€😀" * 60,
    ],
)
def test_fold_unfold(line):
    folded = fold(line)
    assert folded != line
    segments = folded.split("\r\n ")
    assert all(len(s) <= FOLD_WIDTH for s in segments)
    assert "".join(segments) == line
    assert unfold(folded) == line
    assert folded.encode("utf-8").decode("utf-8") == folded


def test_content_lines():
    text = "BEGIN:VCARD\r\nFN:Je\r\n an\r\n\r\nEND:VCARD\r\n"
    assert content_lines(text) == ["BEGIN:VCARD", "FN:Jean", "END:VCARD"]


def test_encode_decode_param_value():
    assert encode_param_value("a,b;c\r\nd\te") == r"a\,b\;c\nd\te"
    assert encode_param_value('"a,b;c"') == '"a,b;c"'
    assert decode_param_value(r"a\,b\;c\nd\te") == "a,b;c\nd\te"
    assert decode_param_value(r'"a\,b\nc"') == '"a\\,b\nc"'


def test_parse_adr_line():
    prop = Prop.fromstr(ADR_LINE)
    assert prop.group is None
    assert prop.name == "ADR"
    assert prop.value == ";;123 Main Street;Any Town;CA;91921-1234;U.S.A."
    assert list(prop.params) == ["geo", "label", "type"]
    assert prop.params["type"] == "HOME,POSTAL,pref"
    assert prop.get_param("geo") == '"geo:12.3457,78.910"'
    assert prop.get_param("label").startswith('"Mr. John Q. Public; Esq.\nMail')
    assert prop.has_type("HOME,POSTAL")
    assert not prop.has_type("WORK")
    assert prop.pref() == 1
    assert prop.support == Recognized()
    assert not prop.unsupported


def test_serialize_adr_line():
    prop = Prop.fromstr(ADR_LINE)
    assert unfold(str(prop)) == (
        'ADR;geo="geo:12.3457,78.910";'
        'label="Mr. John Q. Public; Esq.\\nMail Drop: TNE QB\\n123 Main Street\\n'
        'Any Town, CA  91921-1234 U.S.A.";type=HOME;type=POSTAL;type=pref:'
        ";;123 Main Street;Any Town;CA;91921-1234;U.S.A."
    )
    assert "\r\n " in str(prop)


def test_parse_group_and_case():
    prop = Prop.fromstr("item1.tel;type=cell:+1 555 0100")
    assert prop.group == "item1"
    assert prop.name == "TEL"
    assert prop.params == {"type": "cell"}
    assert str(prop) == "item1.TEL;type=cell:+1 555 0100"


def test_value_may_contain_colons():
    prop = Prop.fromstr("URL:https://example.com:8080/a")
    assert prop.value == "https://example.com:8080/a"


def test_multi_value_param_round_trip():
    prop = Prop.fromstr("TEL;TYPE=work,voice;TYPE=pref:+1")
    assert prop.get_param("type") == "work,voice,pref"
    assert str(prop) == "TEL;type=work;type=voice;type=pref:+1"


def test_escaped_comma_is_not_a_separator():
    line = r"X-PET;X-LIST=a\,b;X-SEMI=c\;d:Rex"
    prop = Prop.fromstr(line)
    assert prop.get_param("x-list") == "a,b"
    assert prop.get_param("x-semi") == "c;d"
    assert str(prop) == r"X-PET;x-list=a\,b;x-semi=c\;d:Rex"


def test_unsupported_property_is_kept():
    prop = Prop.fromstr("X-ABLabel:Custom")
    assert prop.name == "X-ABLABEL"
    assert prop.value == "Custom"
    assert prop.unsupported
    assert prop.support == Unsupported("X-ABLabel:Custom")


def test_unparsable_line():
    with pytest.raises(UnparsableContentLine) as e:
        Prop.fromstr("this is not a property")
    assert e.value.line == "this is not a property"

    prop = Prop.parse_line("this is not a property")
    assert prop.name == UNKNOWN_NAME
    assert prop.unsupported
    assert prop.support.raw == "this is not a property"


def test_name_and_group_are_read_only():
    prop = Prop.fromstr("a.FN:Jean")
    with pytest.raises(AttributeError):
        prop.name = "N"
    with pytest.raises(AttributeError):
        prop.group = "b"
    prop.value = "Jacques"
    assert str(prop) == "a.FN:Jacques"


@pytest.mark.parametrize(
    "name,value",
    [
        ("FN", "Jack Sparrow"),
        ("fn", "Jean-François Davignon"),
        ("NOTE", "a:b;c,d"),
        ("KIND", "group"),
        ("x-wild", "Monkey"),
        ("NOTE", "long text " * 20 + "end"),
    ],
)
def test_create_round_trip(name, value):
    prop = Prop.create(name, value)
    parsed = Prop.fromstr(unfold(str(prop)))
    assert parsed.name == prop.name == name.upper()
    assert parsed.value == value


def test_create_rejects():
    with pytest.raises(UnrecognizedPropertyName):
        Prop.create("HALLUCINATING", "MONKEY")
    with pytest.raises(InvalidPropertyValue):
        Prop.create("KIND", "bogus")


def test_set_and_get_param():
    prop = Prop.create("FN", "Jack Sparrow")
    assert not prop.set_param("type", "voice")
    assert not prop.set_param("crapparam", "voice")
    assert not prop.set_param("type", "pref")
    assert prop.set_param("type", "home")
    assert prop.set_param("TYPE", "x-wild")
    assert prop.get_param("type") == "home,x-wild"
    assert prop.get_param("pref") is None
    assert str(prop) == "FN;type=home;type=x-wild:Jack Sparrow"


def test_set_param_encodes_value():
    prop = Prop.create("NOTE", "hello")
    assert prop.set_param("x-comment", "a,b;c\nd")
    assert prop.params["x-comment"] == r"a\,b\;c\nd"
    assert prop.get_param("x-comment") == "a,b;c\nd"
    assert str(prop) == r"NOTE;x-comment=a\,b\;c\nd:hello"


def test_pref():
    prop = Prop.fromstr("EMAIL;TYPE=work,PREF:a@example.com")
    assert prop.pref() == 1
    prop = Prop.fromstr("EMAIL;PREF=3:a@example.com")
    assert prop.pref() == 3
    assert prop.get_param("pref") == 3
    prop = Prop.fromstr("EMAIL;TYPE=work:a@example.com")
    assert prop.pref() == 0
    prop = Prop.create("EMAIL", "a@example.com")
    assert prop.set_param("pref", "01")
    assert prop.pref() == 1


def test_address_payload():
    prop = Prop.fromstr(ADR_LINE).upgrade(Shape.address)
    assert prop.shape is Shape.address
    assert prop.payload == Address(
        po_box="",
        extended="",
        street="123 Main Street",
        city="Any Town",
        region="CA",
        zip="91921-1234",
        country="U.S.A.",
    )
    prop.value = ";;1 Other Road;Elsewhere;;;"
    assert prop.payload.street == "1 Other Road"
    assert prop.payload.country == ""


def test_address_field_count():
    assert Address.from_value("a;b") == Address("a", "b")
    assert Address.from_value("a;b;c;d;e;f;g;h;i").country == "g"
    assert Address.from_value(r"a\;b;c").po_box == r"a\;b"


def test_upgrade_copies_params():
    prop = Prop.fromstr(ADR_LINE)
    upgraded = prop.upgrade(Shape.address)
    upgraded.set_param("x-extra", "1")
    assert "x-extra" not in prop.params
    assert prop.shape is Shape.generic
    assert prop.payload is None


def test_upgrade_type_mismatch():
    with pytest.raises(TypeMismatch):
        Prop.fromstr("N:Jean;Béliveau;;;").upgrade(Shape.address)
    with pytest.raises(TypeMismatch):
        Prop.fromstr(ADR_LINE).upgrade(Shape.name)


def test_address_create():
    prop = Address.create("111 my street", "My City", "My Region", "G1Q 1Q9", "My Country")
    assert prop.name == "ADR"
    assert prop.value == ";;111 my street;My City;My Region;G1Q 1Q9;My Country"
    assert prop.payload.zip == "G1Q 1Q9"
    assert prop == Prop.fromstr(f"ADR:{prop.value}").upgrade(Shape.address)


def test_name_payload():
    prop = Prop.fromstr("n:Stevenson;John;Philip,Paul;Dr.;Jr.,M.D.,A.C.P.")
    prop = prop.upgrade(Shape.name)
    assert prop.payload == Name("Stevenson", "John", "Philip,Paul", "Dr.", "Jr.,M.D.,A.C.P.")
    assert not prop.set_param("type", "pref")


def test_name_create():
    prop = Name.create("davignon", "Jean-François", "Lambert", "Mr.")
    assert prop.value == "davignon;Jean-François;Lambert;Mr.;"
    assert prop.payload.prefix == "Mr."
    assert prop.payload.suffix == ""
    assert prop.set_param("SORT-AS", '"Picard, Jean-Luc"')
    assert str(prop) == 'N;sort-as="Picard, Jean-Luc":davignon;Jean-François;Lambert;Mr.;'


def test_to_json():
    data = json.loads(Prop.fromstr("TEL;TYPE=cell:+1").to_json())
    assert data["name"] == "TEL"
    assert data["params"] == {"type": "cell"}
    assert data["unsupported"] is False
