"""系统提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取对应的 system prompt 文本，
随每次流式调用一起发送给后端。
"""

from functools import lru_cache
from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent


@lru_cache(maxsize=8)
def load_system_prompt(locale: str = "zh") -> str:
    """加载书籍解读专家的系统提示词，未知语言回退到中文。"""

    fname = PROMPTS_DIR / locale / "book_interpret_system.md"
    if not fname.exists():
        fname = PROMPTS_DIR / "zh" / "book_interpret_system.md"
    return fname.read_text(encoding="utf-8")
