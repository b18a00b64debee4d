r"""``\stack[id]`` placeholders in description and help text."""
from __future__ import annotations

import re
from typing import Callable

_STACK_TOKEN = re.compile(r"\\stack\[(\d+)\]")


def replace_stack_tokens(text: str, lookup: Callable[[int], int]) -> str:
    r"""Replace every ``\stack[id]`` in ``text`` with ``lookup(id)``."""
    if not text:
        return text
    return _STACK_TOKEN.sub(lambda match: str(lookup(int(match.group(1)))), text)
