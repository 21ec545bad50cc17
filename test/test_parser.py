"""弹幕文件解析的测试。"""

import json

from danmaku_models import DisplayMode
from danmaku_parser import (
    decimal_to_hex_color, load_from_file, normalize_color,
    parse_json_text, parse_xml_text,
)

SAMPLE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<i>
    <d p="1.5,1,25,16711680,1700000000,0,abc,1">hello</d>
    <d p="2.0,5,25,255,1700000000,0,abc,2">top text</d>
    <d p="3.0,4,25,65280,1700000000,0,abc,3">bottom text</d>
    <d p="4.0,7,25,0,1700000000,0,abc,4">special</d>
    <d p="bad">broken</d>
    <d p="x,1,25,0">not a number</d>
    <d p="5.0,1,25,0"></d>
</i>
"""


def test_decimal_to_hex_color():
    assert decimal_to_hex_color(16777215) == '#ffffff'
    assert decimal_to_hex_color(255) == '#0000ff'


def test_normalize_color():
    assert normalize_color(16711680) == '#ff0000'
    assert normalize_color('65280') == '#00ff00'
    assert normalize_color('#ABC') == '#aabbcc'
    assert normalize_color('#FF8800') == '#ff8800'
    assert normalize_color('#12345') == '#ffffff'
    assert normalize_color('red') == '#ffffff'
    assert normalize_color(None) == '#ffffff'


def test_parse_xml_text():
    events = parse_xml_text(SAMPLE_XML)
    assert [e.text for e in events] == ["hello", "top text", "bottom text"]
    assert [e.mode for e in events] == [DisplayMode.SCROLL, DisplayMode.TOP, DisplayMode.BOTTOM]
    assert events[0].time == 1.5
    assert events[0].color == '#ff0000'


def test_parse_json_response():
    payload = {
        "code": 200,
        "danmuku": [
            {"text": "scroll one", "time": 1.0, "color": "#FFFFFF", "mode": 0},
            {"text": "top one", "time": 2.0, "color": 16711680, "mode": 1},
            {"m": "from p", "p": "3.5,2"},
            {"text": "unknown mode", "time": 4.0, "mode": 9},
            {"text": "bad time", "time": "later"},
            "not a record",
        ],
    }
    events = parse_json_text(json.dumps(payload))
    assert [(e.text, e.time, e.mode) for e in events] == [
        ("scroll one", 1.0, DisplayMode.SCROLL),
        ("top one", 2.0, DisplayMode.TOP),
        ("from p", 3.5, DisplayMode.BOTTOM),
    ]
    assert events[1].color == '#ff0000'


def test_parse_json_error_code():
    assert parse_json_text(json.dumps({"code": 404, "danmuku": [{"text": "x", "time": 1}]})) == []


def test_parse_json_plain_list():
    events = parse_json_text(json.dumps([{"text": "plain", "time": 0.5}]))
    assert [e.text for e in events] == ["plain"]
    assert events[0].color == '#ffffff'


def test_load_from_file(tmp_path):
    xml_path = tmp_path / "comments.xml"
    xml_path.write_text(SAMPLE_XML, encoding="utf-8")
    assert len(load_from_file(str(xml_path))) == 3

    json_path = tmp_path / "comments.json"
    json_path.write_text(json.dumps([{"text": "json one", "time": 1}]), encoding="utf-8")
    assert [e.text for e in load_from_file(str(json_path))] == ["json one"]


def test_load_failures_return_empty(tmp_path):
    assert load_from_file(str(tmp_path / "missing.xml")) == []
    broken = tmp_path / "broken.xml"
    broken.write_text("<i><d p='1,1,25,0'>oops</i>", encoding="utf-8")
    assert load_from_file(str(broken)) == []
    broken_json = tmp_path / "broken.json"
    broken_json.write_text("{not json", encoding="utf-8")
    assert load_from_file(str(broken_json)) == []
