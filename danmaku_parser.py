# danmaku_parser.py
import json
import logging
import xml.etree.ElementTree as ET

from danmaku_models import CommentEvent, DisplayMode

# Bilibili XML 的模式编号 (1-3=滚动, 4=底部, 5=顶部)
XML_MODES = {1: DisplayMode.SCROLL, 2: DisplayMode.SCROLL, 3: DisplayMode.SCROLL,
             4: DisplayMode.BOTTOM, 5: DisplayMode.TOP}
# JSON 弹幕接口的模式编号 (0=滚动, 1=顶部, 2=底部)
JSON_MODES = {0: DisplayMode.SCROLL, 1: DisplayMode.TOP, 2: DisplayMode.BOTTOM}

DEFAULT_COLOR = '#ffffff'


def decimal_to_hex_color(color_decimal: int) -> str:
    """将十进制整数表示的RGB颜色转换为 #rrggbb 字符串。"""
    return f"#{color_decimal & 0xFFFFFF:06x}"


def normalize_color(value) -> str:
    """
    把各种来源的颜色值统一成 #rrggbb。
    支持十进制整数、十进制数字字符串、'#rgb'/'#rrggbb' 字符串，无法识别时返回白色。
    """
    if value is None or value == '':
        return DEFAULT_COLOR
    if isinstance(value, int):
        return decimal_to_hex_color(value)
    text = str(value).strip()
    if text.startswith('#'):
        digits = text[1:]
        if len(digits) == 3:
            digits = ''.join(c * 2 for c in digits)
        try:
            int(digits, 16)
        except ValueError:
            return DEFAULT_COLOR
        return f"#{digits.lower()}" if len(digits) == 6 else DEFAULT_COLOR
    try:
        return decimal_to_hex_color(int(text))
    except ValueError:
        return DEFAULT_COLOR


def parse_xml_text(xml_text: str) -> list[CommentEvent]:
    """
    解析Bilibili风格的XML弹幕文本。

    'p' 属性包含多个逗号分隔的参数: 时间,模式,字号,颜色,...
    格式错误的行会被忽略。顺序保持与文件一致，排序交给归一化阶段。
    """
    events = []
    root = ET.fromstring(xml_text)
    for d_element in root.iter('d'):
        p_attr = d_element.get('p', '').split(',')
        if len(p_attr) < 4:
            continue
        try:
            start_time = float(p_attr[0])
            mode = int(p_attr[1])
            color = decimal_to_hex_color(int(p_attr[3]))
        except (ValueError, IndexError) as e:
            logging.warning(f"忽略格式错误的弹幕行: p='{p_attr}', 错误: {e}")
            continue
        text = d_element.text
        # 只处理支持的模式，并且文本不能为空
        if text and mode in XML_MODES:
            events.append(CommentEvent(text=text, time=start_time, color=color, mode=XML_MODES[mode]))
    return events


def parse_json_records(records: list) -> list[CommentEvent]:
    """
    解析JSON弹幕接口返回的记录列表。
    每条记录可以是 {"text"/"m", "time", "color", "mode"}，也可以只带 "p" 字段。
    """
    events = []
    for item in records:
        if not isinstance(item, dict):
            continue
        p_attr = str(item.get('p') or '').split(',')
        try:
            text = item.get('text') or item.get('m') or ''
            start_time = float(item.get('time') if item.get('time') is not None else (p_attr[0] or 0))
            mode_code = int(item.get('mode') if item.get('mode') is not None else
                            (p_attr[1] if len(p_attr) > 1 and p_attr[1] else 0))
        except (ValueError, TypeError) as e:
            logging.warning(f"忽略格式错误的弹幕记录: {item!r}, 错误: {e}")
            continue
        mode = JSON_MODES.get(mode_code)
        if not text or mode is None:
            continue
        events.append(CommentEvent(text=str(text), time=start_time,
                                   color=normalize_color(item.get('color')), mode=mode))
    return events


def parse_json_text(json_text: str) -> list[CommentEvent]:
    """解析JSON弹幕文本：接口响应 {"code": 200, "danmuku": [...]} 或直接的记录列表。"""
    data = json.loads(json_text)
    if isinstance(data, dict):
        if data.get('code', 200) != 200:
            logging.warning(f"弹幕接口返回错误码: {data.get('code')}")
            return []
        data = data.get('danmuku') or []
    if not isinstance(data, list):
        return []
    return parse_json_records(data)


def load_from_xml(filepath: str) -> list[CommentEvent]:
    """
    从Bilibili风格的XML文件中加载弹幕。

    Args:
        filepath (str): XML弹幕文件的路径。

    Returns:
        list[CommentEvent]: 弹幕列表（未排序）。文件不存在或解析失败时返回空列表。
    """
    try:
        with open(filepath, encoding='utf-8') as f:
            events = parse_xml_text(f.read())
        logging.info(f"成功加载 {len(events)} 条弹幕。")
        return events
    except FileNotFoundError:
        logging.error(f"错误: 弹幕文件 '{filepath}' 未找到。")
        return []
    except ET.ParseError as e:
        logging.error(f"解析XML时发生错误: {e}")
        return []


def load_from_json(filepath: str) -> list[CommentEvent]:
    """从JSON文件加载弹幕，失败时返回空列表。"""
    try:
        with open(filepath, encoding='utf-8') as f:
            events = parse_json_text(f.read())
        logging.info(f"成功加载 {len(events)} 条弹幕。")
        return events
    except FileNotFoundError:
        logging.error(f"错误: 弹幕文件 '{filepath}' 未找到。")
        return []
    except json.JSONDecodeError as e:
        logging.error(f"解析JSON时发生错误: {e}")
        return []


def load_from_file(filepath: str) -> list[CommentEvent]:
    """根据扩展名选择解析器。"""
    if filepath.lower().endswith('.json'):
        return load_from_json(filepath)
    return load_from_xml(filepath)
