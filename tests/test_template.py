import pytest

from licensa.core.catalog import LicenseSpec
from licensa.core.errors import MissingField, RenderError
from licensa.core.template import find_placeholders, render, render_text


def test_render_substitutes_fields_verbatim():
    spec = LicenseSpec("MIT", "MIT License", "Copyright {{year}} {{ author }}\nSPDX-License-Identifier: MIT")
    out = render(spec, {"year": "2024", "author": "Jane Doe", "unused": "ignored"})
    assert out == "Copyright 2024 Jane Doe\nSPDX-License-Identifier: MIT"


def test_render_missing_field_reports_every_name():
    with pytest.raises(MissingField) as excinfo:
        render_text("{{a}} and {{b}} and {{a}}", {"c": "x"})
    assert excinfo.value.names == ("a", "b")
    assert excinfo.value.name == "a"
    assert isinstance(excinfo.value, RenderError)


def test_substituted_values_are_not_expanded_again():
    assert render_text("by {{author}}", {"author": "{{year}}", "year": "2024"}) == "by {{year}}"


def test_template_whitespace_is_preserved_and_crlf_normalized():
    assert render_text("a\r\n\r\n  {{x}}  \n", {"x": "1"}) == "a\n\n  1  \n"


def test_find_placeholders_first_occurrence_order():
    assert find_placeholders("{{b}}{{a}}{{ b }}{{not valid}}") == ("b", "a")
