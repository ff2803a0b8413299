"""系统提示词加载工具。

按语言(locale) 从 prompts/zh 目录读取 {name}_system.md 模板，
模板中的 {context} / {file_name} 由 AssistantEngine 填充。
"""

from pathlib import Path
from typing import Optional


PROMPTS_DIR = Path(__file__).resolve().parent


def prompt_path(name: str, locale: str = "zh") -> Path:
    return PROMPTS_DIR / locale / f"{name}_system.md"


def load_system_prompt(name: str, locale: str = "zh", fallback: Optional[str] = None) -> str:
    """加载名为 name 的系统提示词模板；不存在时改用 fallback 模板。"""

    fname = prompt_path(name, locale)
    if not fname.exists() and fallback:
        fname = prompt_path(fallback, locale)
    return fname.read_text(encoding="utf-8")
