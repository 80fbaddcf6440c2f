"""Line-oriented LCS diff producing unified-diff text"""

from dataclasses import dataclass


CONTEXT = 3

EQUAL = " "
DELETE = "-"
INSERT = "+"


@dataclass(frozen=True)
class DiffOp:
    """One line-level edit. pos_a/pos_b are the cursor positions when emitted."""
    kind: str       # EQUAL, DELETE or INSERT
    line: str
    pos_a: int
    pos_b: int


def lcs_table(a: list[str], b: list[str]) -> list[list[int]]:
    """Return table where table[i][j] is the LCS length of a[i:] and b[j:]."""
    m, n = len(a), len(b)
    table = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(m - 1, -1, -1):
        for j in range(n - 1, -1, -1):
            if a[i] == b[j]:
                table[i][j] = table[i + 1][j + 1] + 1
            else:
                table[i][j] = max(table[i + 1][j], table[i][j + 1])
    return table


def edit_script(a: list[str], b: list[str], table: list[list[int]] = None) -> list[DiffOp]:
    """Walk a and b along the LCS table and return the ordered edit operations.

    When both directions keep the same LCS length the delete is emitted first,
    so a changed line always reads as '-old' followed by '+new'.
    """
    if table is None:
        table = lcs_table(a, b)
    ops: list[DiffOp] = []
    i = j = 0
    while i < len(a) and j < len(b):
        if a[i] == b[j]:
            ops.append(DiffOp(EQUAL, a[i], i, j))
            i += 1
            j += 1
        elif table[i + 1][j] >= table[i][j + 1]:
            ops.append(DiffOp(DELETE, a[i], i, j))
            i += 1
        else:
            ops.append(DiffOp(INSERT, b[j], i, j))
            j += 1
    for i in range(i, len(a)):
        ops.append(DiffOp(DELETE, a[i], i, j))
    for j in range(j, len(b)):
        ops.append(DiffOp(INSERT, b[j], len(a), j))
    return ops


def _has_changes(ops: list[DiffOp]) -> bool:
    return any(op.kind != EQUAL for op in ops)


def build_hunks(ops: list[DiffOp]) -> list[list[DiffOp]]:
    """Group ops into hunks with up to CONTEXT lines of context on each side.

    Changes whose operation-index distance is at most 2 * CONTEXT share a hunk.
    """
    hunks: list[list[DiffOp]] = []
    current: list[DiffOp] = []
    last = -1

    for i, op in enumerate(ops):
        if op.kind == EQUAL:
            continue
        if last == -1:
            current = ops[max(i - CONTEXT, 0):i]
        elif i - last > 2 * CONTEXT:
            hunks.append(current + ops[last + 1:last + 1 + CONTEXT])
            current = ops[max(i - CONTEXT, 0):i]
        else:
            current.extend(ops[last + 1:i])
        current.append(op)
        last = i

    if last >= 0:
        hunks.append(current + ops[last + 1:last + 1 + CONTEXT])

    return [h for h in hunks if _has_changes(h)]


def format_hunk(ops: list[DiffOp]) -> str:
    """Render one hunk: '@@ -startA,countA +startB,countB @@' then one line per op."""
    if not ops:
        return ""
    count_a = sum(1 for op in ops if op.kind != INSERT)
    count_b = sum(1 for op in ops if op.kind != DELETE)
    lines = [f"@@ -{ops[0].pos_a + 1},{count_a} +{ops[0].pos_b + 1},{count_b} @@\n"]
    lines.extend(f"{op.kind}{op.line}\n" for op in ops)
    return "".join(lines)


def unified_diff(text_a: str, text_b: str, label_a: str, label_b: str) -> str:
    """Return a unified diff of text_a -> text_b, or '' when they match line for line."""
    lines_a = text_a.split("\n")
    lines_b = text_b.split("\n")
    hunks = build_hunks(edit_script(lines_a, lines_b))
    if not hunks:
        return ""
    return f"--- {label_a}\n+++ {label_b}\n" + "".join(format_hunk(h) for h in hunks)
