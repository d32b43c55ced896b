"""Safe split points for progressively committed markdown.

Streaming output is committed in chunks so only the tail of a long message
has to be re-rendered. A chunk boundary must never land inside a fenced
code block, and otherwise falls right after a blank line (paragraph break).
"""

from __future__ import annotations

_FENCE = "```"
_PARAGRAPH_BREAK = "\n\n"


def is_index_inside_code_block(content: str, index: int) -> bool:
    """True when an odd number of fences opens before ``index``."""
    fence_count = 0
    search_pos = 0
    while search_pos < len(content):
        fence = content.find(_FENCE, search_pos)
        if fence == -1 or fence >= index:
            break
        fence_count += 1
        search_pos = fence + len(_FENCE)
    return fence_count % 2 == 1


def find_enclosing_code_block_start(content: str, index: int) -> int:
    """Start of the fenced block that contains ``index``, or -1."""
    if not is_index_inside_code_block(content, index):
        return -1
    search_pos = 0
    while search_pos < index:
        block_start = content.find(_FENCE, search_pos)
        if block_start == -1 or block_start >= index:
            break
        block_end = content.find(_FENCE, block_start + len(_FENCE))
        if block_end == -1 or index < block_end + len(_FENCE):
            return block_start
        search_pos = block_end + len(_FENCE)
    return -1


def find_last_safe_split_point(content: str) -> int:
    """Return the index at which ``content`` may be cut.

    ``len(content)`` means "do not split". While a fence is still open, only
    a paragraph break before it qualifies; text that directly precedes the
    fence stays live until the block closes.
    """
    search_end = len(content)
    enclosing_start = find_enclosing_code_block_start(content, search_end)
    if enclosing_start != -1:
        search_end = enclosing_start

    while search_end > 0:
        break_index = content.rfind(_PARAGRAPH_BREAK, 0, search_end)
        if break_index == -1:
            break
        split_point = break_index + len(_PARAGRAPH_BREAK)
        if not is_index_inside_code_block(content, split_point):
            return split_point
        search_end = break_index + 1
    return len(content)


__all__ = [
    "find_enclosing_code_block_start",
    "find_last_safe_split_point",
    "is_index_inside_code_block",
]
