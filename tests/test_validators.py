"""
Tests for input validators: SSRF guard, filenames, uploads, error rendering.
"""

import pytest

from shared.utils.validators import (
    UrlValidationError,
    escape_like_pattern,
    is_blocked_ip,
    sanitize_filename,
    sanitize_search_term,
    sanitize_validation_error,
    slugify,
    split_image_urls,
    validate_external_url,
    validate_upload,
)

from tests.conftest import public_resolver


class TestValidateExternalUrl:
    def test_public_url_passes(self):
        assert validate_external_url("  https://cdn.example.com/a.jpg ", resolver=public_resolver) == (
            "https://cdn.example.com/a.jpg"
        )

    @pytest.mark.parametrize("url", ["ftp://cdn.example.com/a.jpg", "javascript:alert(1)", "file:///etc/hosts"])
    def test_scheme_rejected(self, url):
        with pytest.raises(UrlValidationError, match="only http and https"):
            validate_external_url(url, resolver=public_resolver)

    def test_no_hostname(self):
        with pytest.raises(UrlValidationError, match="no hostname"):
            validate_external_url("https:///a.jpg", resolver=public_resolver)

    def test_localhost(self):
        with pytest.raises(UrlValidationError, match="localhost"):
            validate_external_url("http://LOCALHOST:8080/a.jpg", resolver=public_resolver)

    def test_resolution_failure(self):
        def failing(host):
            raise OSError("Name or service not known")

        with pytest.raises(UrlValidationError, match="failed to resolve hostname"):
            validate_external_url("https://nowhere.invalid/a.jpg", resolver=failing)

    def test_any_private_address_blocks(self):
        with pytest.raises(UrlValidationError, match="192.168.1.10"):
            validate_external_url(
                "https://mixed.example.com/a.jpg",
                resolver=lambda host: ["93.184.216.34", "192.168.1.10"],
            )

    def test_empty_resolution(self):
        with pytest.raises(UrlValidationError, match="did not resolve"):
            validate_external_url("https://empty.example.com/a.jpg", resolver=lambda host: [])


class TestBlockedIp:
    @pytest.mark.parametrize(
        "ip",
        ["10.0.0.1", "172.16.5.4", "172.31.255.255", "192.168.0.1", "127.0.0.1",
         "169.254.169.254", "0.0.0.0", "::1", "fd00::1", "fe80::1%eth0", "::ffff:127.0.0.1"],
    )
    def test_reserved(self, ip):
        assert is_blocked_ip(ip)

    @pytest.mark.parametrize("ip", ["93.184.216.34", "172.32.0.1", "8.8.8.8", "2606:4700::1111"])
    def test_public(self, ip):
        assert not is_blocked_ip(ip)


class TestSanitizeFilename:
    def test_replaces_unsafe_characters(self):
        assert sanitize_filename("../../etc/passwd") == ".._.._etc_passwd"
        assert sanitize_filename("my photo (1).JPG") == "my_photo__1_.JPG"

    @pytest.mark.parametrize("name", ["", ".", ".."])
    def test_degenerate_names(self, name):
        assert sanitize_filename(name) == "file"

    def test_truncated(self):
        assert len(sanitize_filename("a" * 250)) == 100

    def test_idempotent(self):
        once = sanitize_filename("weird name/with:chars?.png")
        assert sanitize_filename(once) == once


class TestValidateUpload:
    def test_normalizes_content_type(self):
        assert validate_upload("Image/PNG; charset=binary", 10, 100) == "image/png"

    def test_rejects_type(self):
        with pytest.raises(ValueError, match="Invalid file type"):
            validate_upload("application/pdf", 10, 100)

    def test_rejects_missing_type(self):
        with pytest.raises(ValueError):
            validate_upload(None, 10, 100)

    def test_rejects_oversize(self):
        with pytest.raises(OverflowError):
            validate_upload("image/jpeg", 101, 100)

    def test_limit_is_inclusive(self):
        assert validate_upload("image/webp", 100, 100) == "image/webp"


class TestSearchHelpers:
    def test_escape_like(self):
        assert escape_like_pattern("50%_off\\") == "50\\%\\_off\\\\"

    def test_search_term(self):
        assert sanitize_search_term("  whole   milk ") == "whole milk"
        assert sanitize_search_term(None) == ""
        assert len(sanitize_search_term("x" * 500)) == 100

    def test_slugify(self):
        assert slugify("Fresh Fruit & Veg") == "fresh-fruit-veg"
        assert slugify("!!!") == "item"

    def test_split_image_urls(self):
        assert split_image_urls("a.jpg, b.jpg\nc.jpg,,") == ["a.jpg", "b.jpg", "c.jpg"]
        assert split_image_urls([" a.jpg ", ""]) == ["a.jpg"]
        assert split_image_urls(None) == []


class TestSanitizeValidationError:
    def test_missing_field(self):
        errors = [{"type": "missing", "loc": ("body", "email"), "msg": "Field required"}]
        assert sanitize_validation_error(errors) == "email is required"

    def test_too_short(self):
        errors = [{
            "type": "string_too_short",
            "loc": ("body", "password"),
            "msg": "String should have at least 8 characters",
            "ctx": {"min_length": 8},
            "input": "secret",
        }]
        message = sanitize_validation_error(errors)
        assert message == "password must be at least 8 characters"
        assert "secret" not in message

    def test_nested_location(self):
        errors = [{"type": "int_parsing", "loc": ("body", "products", 3, "stock_quantity"), "msg": "x"}]
        assert sanitize_validation_error(errors) == "stock_quantity must be a number"

    def test_float_bounds_print_plainly(self):
        errors = [{"type": "less_than_equal", "loc": ("body", "latitude"), "msg": "x", "ctx": {"le": 90.0}}]
        assert sanitize_validation_error(errors) == "latitude must be at most 90"
        errors = [{"type": "greater_than_equal", "loc": ("body", "delivery_fee"), "msg": "x", "ctx": {"ge": 0.5}}]
        assert sanitize_validation_error(errors) == "delivery_fee must be at least 0.5"

    def test_unknown_type_is_generic(self):
        errors = [{"type": "model_attributes_type", "loc": ("body",), "msg": "Input should be a valid dict"}]
        assert sanitize_validation_error(errors) == "Invalid request body"

    def test_empty(self):
        assert sanitize_validation_error([]) == "Invalid request body"
