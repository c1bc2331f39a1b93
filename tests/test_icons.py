from urllib.parse import unquote

from zenmarks.icons import GLOBE_ICON, OTHER, domain_of, favicon_service_url, resolve_icon
from zenmarks.model import BookmarkRecord


def test_domain_of_host():
    assert domain_of("https://example.com/a?b=1") == "example.com"
    assert domain_of("https://WWW.Example.com:8443/") == "www.example.com"


def test_domain_of_unparsable():
    assert domain_of("not a url") is None
    assert domain_of("http://[::1") is None
    assert domain_of("") is None


def test_domain_of_registrable():
    assert domain_of("https://a.b.example.co.uk/x", registrable=True) == "example.co.uk"
    assert domain_of("http://localhost:8080/", registrable=True) == "localhost"


def test_embedded_icon_is_returned_verbatim():
    rec = BookmarkRecord(1, "t", "https://example.com/", icon_url="fake-favicon-uri:https://example.com/")
    assert resolve_icon(rec, "example.com") == "fake-favicon-uri:https://example.com/"


def test_fallback_service_url_is_percent_encoded():
    rec = BookmarkRecord(1, "t", "https://example.com/a b?x=1&y=2")
    icon = resolve_icon(rec, "example.com")
    assert icon.startswith("https://www.google.com/s2/favicons?sz=64&domain_url=")
    encoded = icon.split("domain_url=", 1)[1]
    assert "/" not in encoded and "&" not in encoded
    assert unquote(encoded) == rec.url


def test_other_group_gets_globe():
    assert resolve_icon(BookmarkRecord(1, "t", "http:///x"), OTHER) == GLOBE_ICON


def test_custom_service_template():
    assert favicon_service_url("https://a.example/", "https://icons.example/?u={url}") == (
        "https://icons.example/?u=https%3A%2F%2Fa.example%2F"
    )
