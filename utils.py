# utils.py

import random
import uuid


def generate_id(prefix):
    """Return a fresh identifier such as ``block-3f9c0a1b2d4e``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def get_color(allocated):
    """Return a color for allocated/free blocks."""
    if not allocated:
        return "#3a3a3a"  # dark grey
    # random pastel colors
    return f"hsl({random.randint(0, 360)}, 70%, 75%)"


def block_colors(rows, cache):
    """
    Return one color per block row, reusing ``cache`` for occupied blocks.

    Entries for processes that no longer own a block are dropped, so the
    cache never outgrows the current block table.
    """
    live = {row['process_id'] for row in rows if not row['is_free']}
    for process_id in list(cache):
        if process_id not in live:
            del cache[process_id]

    colors = []
    for row in rows:
        if row['is_free']:
            colors.append(get_color(False))
        else:
            colors.append(cache.setdefault(row['process_id'], get_color(True)))
    return colors
