import hashlib
import json
import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(\{[\s\S]*\})\s*```", re.DOTALL)


def question_digest(question: Optional[str]) -> str:
    """缓存键中的问题摘要，无问题时为固定哨兵 none"""
    if not question:
        return "none"
    return hashlib.md5(question.encode("utf-8")).hexdigest()


def prompt_digest(prompt: str) -> str:
    return hashlib.sha256(prompt.encode("utf-8")).hexdigest()[:16]


def parse_lenient_json(json_string: str) -> dict:
    """
    尽力从模型输出中解析出一个JSON对象。
    先剥离 ```json 代码块，再按“诊断-修复-重试”循环处理截断和悬空逗号。
    无法解析时抛出 json.JSONDecodeError，由调用方决定降级方案。
    """
    if not json_string or not json_string.strip():
        raise json.JSONDecodeError("模型返回内容为空", json_string or "", 0)

    match = _FENCED_BLOCK.search(json_string)
    content_to_parse = match.group(1) if match else json_string

    start_pos = content_to_parse.find("{")
    if start_pos == -1:
        raise json.JSONDecodeError("在字符串中未找到JSON起始符号 '{'", json_string, 0)

    current_string = content_to_parse[start_pos:]
    # 右侧多余的说明文字
    end_pos = current_string.rfind("}")
    if end_pos != -1:
        try:
            parsed = json.loads(current_string[: end_pos + 1])
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

    max_repairs = 5
    for attempt in range(max_repairs + 1):
        try:
            parsed = json.loads(current_string)
        except json.JSONDecodeError as e:
            logger.debug(f"解析尝试 #{attempt + 1} 失败: {e.msg} at pos {e.pos}. 尝试修复...")
            if attempt >= max_repairs:
                raise

            error_msg = e.msg.lower()
            before = current_string
            stripped = current_string.rstrip()

            if "unterminated string" in error_msg:
                current_string = close_open_brackets(current_string + '"')
            elif "expecting value" in error_msg and stripped.endswith(","):
                current_string = close_open_brackets(stripped[:-1])
            else:
                last_comma_pos = _last_comma_outside_string(current_string)
                if last_comma_pos == -1:
                    raise
                current_string = close_open_brackets(current_string[:last_comma_pos])

            if current_string == before:
                raise
            continue

        if not isinstance(parsed, dict):
            raise json.JSONDecodeError("模型返回的JSON不是对象", json_string, 0)
        return parsed

    raise json.JSONDecodeError("无法从模型响应中解析出任何有效的JSON片段", json_string, 0)


def _last_comma_outside_string(text: str) -> int:
    in_string = False
    for i in range(len(text) - 1, -1, -1):
        char = text[i]
        if char == '"' and (i == 0 or text[i - 1] != "\\"):
            in_string = not in_string
        if not in_string and char == ",":
            return i
    return -1


def close_open_brackets(text: str) -> str:
    """计算并补齐所有未闭合的括号。"""
    stack = []
    in_string = False
    for i, char in enumerate(text):
        if char == '"' and (i == 0 or text[i - 1] != "\\"):
            in_string = not in_string
        if in_string:
            continue
        if char in "{[":
            stack.append(char)
        elif char == "}" and stack and stack[-1] == "{":
            stack.pop()
        elif char == "]" and stack and stack[-1] == "[":
            stack.pop()

    return text + "".join("}" if bracket == "{" else "]" for bracket in reversed(stack))
