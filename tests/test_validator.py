"""
Tests for response validation.

Run with: pytest tests/test_validator.py -v
"""
import pytest

from fakes import question

from onboarding.services.validator import REQUIRED_MESSAGE, validate


class TestRequired:

    @pytest.mark.parametrize("value", [None, "", "   ", [], {}])
    def test_blank_required_value_fails(self, value):
        q = question(1, "name", validation={"required": True})
        result = validate(q, value)
        assert result.valid is False
        assert result.errors == [REQUIRED_MESSAGE]

    @pytest.mark.parametrize("value", [None, "", []])
    def test_blank_optional_value_skips_other_rules(self, value):
        q = question(1, "name", validation={"minLength": 5, "pattern": "[a-z]+"})
        assert validate(q, value).valid is True

    def test_required_applies_to_every_type(self):
        q = question(1, "goals", "MULTI_SELECTION", inputConfig={"options": ["a"]}, validation={"required": True})
        assert validate(q, []).errors == [REQUIRED_MESSAGE]

    def test_false_is_not_blank(self):
        q = question(1, "agree", "CONFIRMATION", validation={"required": True})
        assert validate(q, False).valid is True

    def test_custom_error_message(self):
        q = question(1, "name", validation={"required": True, "errorMessage": "Tell us your name"})
        assert validate(q, "").errors == ["Tell us your name"]


class TestText:

    def test_length_limits(self):
        q = question(1, "bio", "AI_SUGGESTION", validation={"minLength": 10, "maxLength": 20})
        assert validate(q, "too short").errors == ["Must be at least 10 characters"]
        assert validate(q, "x" * 21).errors == ["Must be at most 20 characters"]
        assert validate(q, "just right!").valid

    def test_max_length_from_input_config(self):
        q = question(1, "title", inputConfig={"maxLength": 5})
        assert validate(q, "abcdef").errors == ["Must be at most 5 characters"]

    def test_pattern_full_match(self):
        q = question(1, "code", validation={"pattern": "[A-Z]{3}"})
        assert validate(q, "ABC").valid
        assert not validate(q, "ABCD").valid
        assert validate(q, "abc").errors == ["Invalid format"]

    def test_invalid_pattern_is_reported(self):
        q = question(1, "code", validation={"pattern": "([a-z"})
        result = validate(q, "abc")
        assert result.valid is False
        assert result.errors == ["Invalid validation pattern"]

    def test_rejects_non_text(self):
        q = question(1, "name")
        assert validate(q, ["a"]).errors == ["Expected a text value"]

    @pytest.mark.parametrize("value,valid", [
        ("user@example.com", True),
        ("user@example", False),
        ("not an email", False),
    ])
    def test_email(self, value, valid):
        q = question(1, "email", inputConfig={"inputType": "email"})
        assert validate(q, value).valid is valid

    @pytest.mark.parametrize("value,valid", [
        ("https://example.com", True),
        ("example.co.uk/about", True),
        ("ftp://example.com", False),
        ("localhost", False),
    ])
    def test_url(self, value, valid):
        q = question(1, "websiteUrl", inputConfig={"inputType": "url"})
        assert validate(q, value).valid is valid

    def test_tel(self):
        q = question(1, "phone", inputConfig={"inputType": "tel"})
        assert validate(q, "+32 412 34 56 78").valid
        assert not validate(q, "call me").valid

    def test_number_with_range(self):
        q = question(1, "employees", inputConfig={"inputType": "number"}, validation={"min": 1, "max": 500})
        assert validate(q, "25").valid
        assert validate(q, 25).valid
        assert validate(q, "0").errors == ["Must be at least 1"]
        assert validate(q, 501).errors == ["Must be at most 500"]
        assert validate(q, "many").errors == ["Please enter a number"]

    def test_dynamic_accepts_structured_values(self):
        q = question(1, "preview", "DYNAMIC", validation={"minLength": 100})
        assert validate(q, {"selected": "a"}).valid
        assert not validate(q, "short").valid

    def test_custom_error_message_replaces_errors(self):
        q = question(1, "code", validation={"pattern": "\\d+", "minLength": 3, "errorMessage": "Digits only"})
        assert validate(q, "a").errors == ["Digits only"]


class TestSelection:

    def test_single_selection(self):
        q = question(1, "platform", "SELECTION", inputConfig={"options": ["wordpress", "wix"]})
        assert validate(q, "wix").valid
        assert validate(q, "joomla").errors == ["Please choose one of the available options"]

    def test_option_objects(self):
        q = question(1, "platform", "SELECTION", inputConfig={"options": [
            {"value": "wordpress", "label": "WordPress"},
            {"value": "wix", "label": "Wix"},
        ]})
        assert validate(q, "wordpress").valid
        assert not validate(q, "WordPress").valid

    def test_allow_other_and_no_options(self):
        other = question(1, "platform", "SELECTION", inputConfig={"options": ["wix"], "allowOther": True})
        assert validate(other, "joomla").valid
        unconstrained = question(2, "platform", "SELECTION")
        assert validate(unconstrained, "anything").valid

    def test_multi_selection_counts_from_rules(self):
        q = question(
            1, "goals", "MULTI_SELECTION",
            inputConfig={"options": ["a", "b", "c"]},
            validation={"minSelections": 2, "maxSelections": 2},
        )
        assert validate(q, ["a", "b"]).valid
        assert validate(q, ["a"]).errors == ["Select at least 2 options"]
        assert validate(q, ["a", "b", "c"]).errors == ["Select at most 2 options"]

    def test_multi_selection_counts_from_config(self):
        q = question(1, "goals", "MULTI_SELECTION", inputConfig={"options": ["a", "b", "c"], "maxSelect": 1})
        assert validate(q, ["a", "b"]).errors == ["Select at most 1 options"]

    def test_multi_selection_unknown_options(self):
        q = question(1, "goals", "MULTI_SELECTION", inputConfig={"options": ["a", "b"]})
        assert validate(q, ["a", "z"]).errors == ["Unknown options: z"]

    def test_multi_selection_requires_list(self):
        q = question(1, "goals", "MULTI_SELECTION")
        assert validate(q, "a").errors == ["Expected a list of selections"]


class TestOtherTypes:

    def test_slider_range(self):
        q = question(1, "posts", "SLIDER", inputConfig={"min": 0, "max": 30})
        assert validate(q, 12).valid
        assert validate(q, "12").valid
        assert validate(q, 31).errors == ["Must be at most 30"]
        assert validate(q, -1).errors == ["Must be at least 0"]
        assert validate(q, True).errors == ["Expected a number"]

    def test_slider_defaults(self):
        q = question(1, "score", "SLIDER")
        assert validate(q, 100).valid
        assert not validate(q, 101).valid

    def test_file_upload_type_and_size(self):
        q = question(1, "logo", "FILE_UPLOAD", inputConfig={"accept": "image/*", "maxSize": 1000})
        assert validate(q, {"name": "logo.png", "size": 500, "type": "image/png"}).valid
        assert validate(q, {"name": "logo.pdf", "size": 500, "type": "application/pdf"}).errors == [
            "logo.pdf has an unsupported file type"
        ]
        assert validate(q, {"name": "big.png", "size": 5000, "type": "image/png"}).errors == [
            "big.png exceeds the maximum size of 1000 bytes"
        ]

    def test_file_upload_extension_rules(self):
        q = question(1, "brochure", "FILE_UPLOAD", validation={"acceptedFileTypes": [".pdf"], "maxFileSize": 10})
        assert validate(q, {"name": "Brochure.PDF", "size": 10, "type": ""}).valid
        assert not validate(q, {"name": "brochure.docx", "size": 10, "type": ""}).valid

    def test_file_upload_multiple(self):
        single = question(1, "logo", "FILE_UPLOAD")
        files = [{"name": "a.png", "size": 1, "type": "image/png"}, {"name": "b.png", "size": 1, "type": "image/png"}]
        assert validate(single, files).errors == ["Only one file can be uploaded"]
        multiple = question(2, "photos", "FILE_UPLOAD", inputConfig={"multiple": True})
        assert validate(multiple, files).valid

    def test_file_upload_rejects_non_descriptor(self):
        q = question(1, "logo", "FILE_UPLOAD")
        assert validate(q, "logo.png").errors == ["Invalid file"]

    def test_confirmation(self):
        q = question(1, "confirm", "CONFIRMATION", inputConfig={"confirmLabel": "Yes!", "denyLabel": "Nope"})
        assert validate(q, True).valid
        assert validate(q, "Yes!").valid
        assert validate(q, "maybe").errors == ["Please confirm or decline"]

    def test_editable_data_requires_mapping(self):
        q = question(1, "competitors", "EDITABLE_DATA")
        assert validate(q, {"items": []}).valid
        assert validate(q, "x").errors == ["Expected a set of fields"]

    def test_greeting_accepts_anything(self):
        q = question(1, "welcome", "GREETING")
        assert validate(q, "ok").valid
        assert validate(q, None).valid

    def test_value_is_not_mutated(self):
        q = question(1, "goals", "MULTI_SELECTION", inputConfig={"options": ["a", "b"]})
        value = ["b", "a"]
        validate(q, value)
        assert value == ["b", "a"]
