"""Tests for otpauth:// parsing, validation and formatting."""

import logging

import pytest

from authenticator_core.credential import PLACEHOLDER_NAME, Credential
from authenticator_core.exceptions import ParseError, UnsupportedAlgorithmError
from authenticator_core.otpauth import (
    format_otpauth_uri,
    is_valid_otpauth_url,
    parse_otpauth_url,
    require_otpauth_url,
    service_name,
)

EXAMPLE_URL = "otpauth://totp/Example:alice@example.com?secret=JBSWY3DPEHPK3PXP&issuer=Example"


class TestParse:
    def test_example_url(self):
        cred = parse_otpauth_url(EXAMPLE_URL)
        assert cred.name == "Example:alice@example.com"
        assert cred.issuer == "Example"
        assert cred.secret == "JBSWY3DPEHPK3PXP"
        assert cred.algorithm == "SHA1"
        assert cred.digits == 6
        assert cred.period == 30
        assert cred.base_password == ""
        assert cred.use_base_password is False

    def test_all_parameters(self):
        cred = parse_otpauth_url(
            "otpauth://totp/ACME%20Co:john.doe@email.com?secret=HXDMVJECJJWSRB3HWIZR4IFUGFTMXBOZ"
            "&issuer=ACME%20Co&algorithm=SHA256&digits=8&period=60"
        )
        assert cred.name == "ACME Co:john.doe@email.com"
        assert cred.issuer == "ACME Co"
        assert cred.algorithm == "SHA256"
        assert cred.digits == 8
        assert cred.period == 60

    def test_parameter_names_are_case_insensitive(self):
        cred = parse_otpauth_url("otpauth://totp/x?SECRET=JBSWY3DPEHPK3PXP&Issuer=Acme&ALGORITHM=sha512&Digits=7")
        assert cred.secret == "JBSWY3DPEHPK3PXP"
        assert cred.issuer == "Acme"
        assert cred.algorithm == "SHA512"
        assert cred.digits == 7

    def test_first_occurrence_wins(self):
        cred = parse_otpauth_url("otpauth://totp/x?secret=AAAA&secret=BBBB")
        assert cred.secret == "AAAA"

    def test_each_parse_gets_a_new_id(self):
        assert parse_otpauth_url(EXAMPLE_URL).id != parse_otpauth_url(EXAMPLE_URL).id

    @pytest.mark.parametrize(
        "uri",
        [
            "",
            "otpauth://totp/Example",
            "otpauth://totp/Example?",
            "otpauth://totp/Example?issuer=Example",
            "otpauth://totp/Example?secret",
            "otpauth://totp/Ex ample?secret=JBSWY3DPEHPK3PXP",
            "just some text",
        ],
    )
    def test_returns_none(self, uri):
        assert parse_otpauth_url(uri) is None

    def test_empty_secret_value_still_parses(self):
        cred = parse_otpauth_url("otpauth://totp/x?secret=")
        assert cred is not None
        assert cred.secret == ""

    def test_surrounding_whitespace_is_ignored(self):
        assert parse_otpauth_url("  " + EXAMPLE_URL + "\n").secret == "JBSWY3DPEHPK3PXP"

    def test_scheme_is_not_checked(self):
        cred = parse_otpauth_url("https://example.com/label?secret=JBSWY3DPEHPK3PXP")
        assert cred.name == "label"

    def test_hotp_type_is_not_checked(self):
        assert parse_otpauth_url("otpauth://hotp/x?secret=JBSWY3DPEHPK3PXP&counter=3") is not None

    @pytest.mark.parametrize("uri", ["otpauth://totp/?secret=JBSWY3DPEHPK3PXP", "otpauth://totp?secret=JBSWY3DPEHPK3PXP"])
    def test_empty_name(self, uri):
        assert parse_otpauth_url(uri).name == ""

    def test_non_numeric_digits_and_period_fall_back(self):
        diagnostics = []
        cred = parse_otpauth_url("otpauth://totp/x?secret=JBSWY3DPEHPK3PXP&digits=eight&period=1.5", diagnostics)
        assert cred.digits == 6
        assert cred.period == 30
        assert any("digits" in note for note in diagnostics)
        assert any("period" in note for note in diagnostics)

    def test_unknown_algorithm_passes_through(self):
        diagnostics = []
        cred = parse_otpauth_url("otpauth://totp/x?secret=JBSWY3DPEHPK3PXP&algorithm=md5", diagnostics)
        assert cred.algorithm == "MD5"
        assert any("MD5" in note for note in diagnostics)
        with pytest.raises(UnsupportedAlgorithmError):
            cred.generate(59)

    def test_clean_url_has_no_diagnostics(self):
        diagnostics = []
        parse_otpauth_url(EXAMPLE_URL, diagnostics)
        assert diagnostics == []

    def test_diagnostics_are_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="authenticator_core.otpauth"):
            parse_otpauth_url("otpauth://totp/x?secret=JBSWY3DPEHPK3PXP&digits=abc")
        assert "digits 'abc' is not a number" in caplog.text


class TestRequire:
    def test_returns_credential(self):
        assert require_otpauth_url(EXAMPLE_URL).issuer == "Example"

    def test_raises_parse_error(self):
        with pytest.raises(ParseError) as excinfo:
            require_otpauth_url("otpauth://totp/nothing-here")
        assert excinfo.value.uri == "otpauth://totp/nothing-here"
        assert "Invalid OTP Auth URL" in str(excinfo.value)


class TestIsValid:
    def test_valid(self):
        assert is_valid_otpauth_url(EXAMPLE_URL)

    def test_empty_secret_value_counts_as_present(self):
        assert is_valid_otpauth_url("otpauth://totp/x?secret=")

    def test_any_secret_item_counts(self):
        assert is_valid_otpauth_url("otpauth://totp/x?secret&secret=JBSWY3DPEHPK3PXP")

    @pytest.mark.parametrize(
        "uri",
        [
            "otpauth://hotp/x?secret=JBSWY3DPEHPK3PXP",
            "https://example.com/x?secret=JBSWY3DPEHPK3PXP",
            "OTPAUTH://TOTP/x?secret=JBSWY3DPEHPK3PXP",
            "otpauth://totp/x",
            "otpauth://totp/x?issuer=Example",
            "otpauth://totp/x?secret",
            "",
        ],
    )
    def test_invalid(self, uri):
        assert not is_valid_otpauth_url(uri)


class TestServiceName:
    def test_label(self):
        assert service_name("otpauth://totp/GitHub:rachel?secret=A") == "GitHub:rachel"

    def test_placeholder(self):
        assert service_name("otpauth://totp/?secret=A") == PLACEHOLDER_NAME
        assert service_name("not a url") == PLACEHOLDER_NAME


class TestFormat:
    def test_parse_of_format_gives_same_fields(self):
        original = Credential(
            name="ACME Co:john/doe@email.com",
            issuer="ACME Co",
            secret="HXDMVJECJJWSRB3HWIZR4IFUGFTMXBOZ",
            algorithm="SHA256",
            digits=8,
            period=60,
            base_password="pin",
            use_base_password=True,
        )
        uri = format_otpauth_uri(original)
        assert is_valid_otpauth_url(uri)
        parsed = parse_otpauth_url(uri)
        for field in ("name", "issuer", "secret", "algorithm", "digits", "period"):
            assert getattr(parsed, field) == getattr(original, field)

    def test_base_password_is_not_exported(self):
        uri = format_otpauth_uri(Credential(name="x", secret="JBSWY3DPEHPK3PXP", base_password="hunter2"))
        assert "hunter2" not in uri

    def test_no_plus_for_spaces(self):
        uri = format_otpauth_uri(Credential(name="a b", issuer="My Service", secret="JBSWY3DPEHPK3PXP"))
        assert uri.startswith("otpauth://totp/a%20b?")
        assert "issuer=My%20Service" in uri
        assert "+" not in uri

    def test_empty_issuer_is_omitted(self):
        uri = format_otpauth_uri(Credential(name="x", secret="JBSWY3DPEHPK3PXP"))
        assert "issuer" not in uri
