import logging

from sse_parser import extract_assistant_text, extract_image_urls, iter_data_events
from tests.helpers import assistant, sse_body

DOMAIN = "wanx.alicdn.com"


def test_assistant_fragments_are_concatenated_in_stream_order():
    body = sse_body(
        assistant("Hola"),
        {"contents": [{"role": "user", "content": "ignored"}]},
        assistant(", mundo"),
        {"contents": [{"role": "assistant", "content": "!"}, {"role": "assistant", "content": "?"}]},
    )
    assert extract_assistant_text(body) == "Hola, mundo!?"


def test_plain_text_without_data_lines_yields_empty_string():
    assert extract_assistant_text("Hola, mundo!\nno events here") == ""
    assert extract_assistant_text("") == ""


def test_malformed_line_is_skipped_and_logged(caplog):
    body = "data: {not json\n" + sse_body(assistant("ok"))
    with caplog.at_level(logging.WARNING, logger="sse_parser"):
        assert extract_assistant_text(body) == "ok"
    assert any("malformed" in record.message for record in caplog.records)


def test_done_sentinel_and_other_lines_are_not_events():
    body = "event: message\nid: 1\ndata: [DONE]\ndata:\n" + sse_body({"contents": []})
    assert list(iter_data_events(body)) == [{"contents": []}]


def test_events_without_contents_list_are_ignored():
    body = sse_body({"msgStatus": "finished"}, {"contents": "text"}, assistant("x"))
    assert extract_assistant_text(body) == "x"


def test_crlf_lines_are_handled():
    body = sse_body(assistant("a"), assistant("b")).replace("\n", "\r\n")
    assert extract_assistant_text(body) == "ab"


def test_image_urls_are_filtered_stripped_and_deduplicated():
    first = f"https://img.{DOMAIN}/a/1.png?Expires=1&Signature=abc"
    body = sse_body(
        assistant(f"Here you go: {first} and https://example.com/other.png"),
        assistant(f"again {first.replace('Expires=1', 'Expires=2')}"),
        assistant(f"https://img.{DOMAIN}/a/2.png"),
    )
    assert extract_image_urls(body, DOMAIN) == [
        f"https://img.{DOMAIN}/a/1.png",
        f"https://img.{DOMAIN}/a/2.png",
    ]


def test_image_urls_require_domain_in_host():
    body = sse_body(assistant(f"https://evil.example.com/{DOMAIN}/x.png"))
    assert extract_image_urls(body, DOMAIN) == []


def test_image_urls_join_all_contents_of_an_event():
    body = sse_body({
        "contents": [
            {"role": "assistant", "content": f"https://a.{DOMAIN}/1.jpg"},
            {"role": "plugin", "content": f"https://b.{DOMAIN}/2.jpg?x=1"},
        ]
    })
    urls = extract_image_urls(body, DOMAIN)
    assert urls == [f"https://a.{DOMAIN}/1.jpg", f"https://b.{DOMAIN}/2.jpg"]
    assert all("?" not in url for url in urls)
    assert len(set(urls)) == len(urls)
