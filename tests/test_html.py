from __future__ import annotations

from scanrules.parsers.html import Document


def test_outer_html_is_the_literal_source_span() -> None:
    source = '<html><body><A HREF="x.html"  class=big>Link</A><img src=a.png></body></html>'
    doc = Document.parse(source)
    link = doc.select("a")[0]
    img = doc.select("img")[0]
    assert doc.outer_html(link) == '<A HREF="x.html"  class=big>Link</A>'
    assert doc.outer_html(img) == "<img src=a.png>"
    assert link.attr("href") == "x.html"


def test_select_by_attribute_and_valueless_attributes() -> None:
    doc = Document.parse('<div style="color:red"></div><input disabled><p></p>')
    assert [e.tag for e in doc.select(attr="style")] == ["div"]
    disabled = doc.select("input")[0]
    assert disabled.attr("disabled") == ""
    assert disabled.attr("missing") is None


def test_doctype_public_id() -> None:
    doc = Document.parse(
        '<!DOCTYPE HTML PUBLIC "-//W3C//DTD HTML 4.01 Transitional//EN">\n<html></html>')
    assert doc.doctype is not None
    assert doc.doctype.public_id == "-//W3C//DTD HTML 4.01 Transitional//EN"


def test_html5_doctype_has_no_public_id() -> None:
    doc = Document.parse("<!doctype html><html></html>")
    assert doc.doctype is not None
    assert doc.doctype.public_id == ""


def test_missing_doctype() -> None:
    assert Document.parse("<html><p>hi</p></html>").doctype is None


def test_head_membership() -> None:
    doc = Document.parse(
        "<html><head><base href='/a/'></head><body><base href='/b/'></body></html>")
    bases = doc.select("base")
    assert [doc.in_head(b) for b in bases] == [True, False]


def test_elements_without_explicit_head_count_as_head() -> None:
    doc = Document.parse("<meta http-equiv='X-UA-Compatible' content='IE=8'><body></body>")
    assert doc.in_head(doc.select("meta")[0])


def test_style_text_and_nesting() -> None:
    doc = Document.parse("<div><style>body { background: url(bg.png) }</style></div>")
    style = doc.select("style")[0]
    assert "url(bg.png)" in style.text
    assert doc.within(style, "div")


def test_unclosed_markup_still_parses() -> None:
    doc = Document.parse("<html><body><div><a href='#'>x")
    link = doc.select("a")[0]
    assert doc.outer_html(link) == "<a href='#'>x"
    assert doc.within(link, "body")


def test_raw_attr_keeps_character_references() -> None:
    source = ('<div id=a STYLE="background: url(&quot;bg.png&quot;)" '
              "title='x &amp; y' hidden></div>")
    doc = Document.parse(source)
    div = doc.select("div")[0]
    assert div.attr("style") == 'background: url("bg.png")'
    assert doc.raw_attr(div, "style") == "background: url(&quot;bg.png&quot;)"
    assert doc.raw_attr(div, "title") == "x &amp; y"
    assert doc.raw_attr(div, "id") == "a"
    assert doc.raw_attr(div, "hidden") == ""
    assert doc.raw_attr(div, "class") is None
    assert doc.start_tag(div) == source[:-len("</div>")]


def test_malformed_declaration_keeps_earlier_elements() -> None:
    doc = Document.parse("<p>a</p><![foo[ x ]]><p>b</p>")
    assert doc.select("p")[0].text == "a"
