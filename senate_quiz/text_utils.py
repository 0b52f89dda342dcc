import re
import unicodedata

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_SPACES = re.compile(r"\s+")


def normalize_name(value: str) -> str:
    value = unicodedata.normalize("NFKD", (value or "").lower())
    value = "".join(ch for ch in value if not unicodedata.combining(ch))
    value = _NON_ALNUM.sub("", value)
    value = _SPACES.sub(" ", value)
    return value.strip()


def last_name_of(full: str) -> str:
    parts = normalize_name(full).split()
    return parts[-1] if parts else ""


def levenshtein(a: str, b: str) -> int:
    """Edit distance between the normalized forms of ``a`` and ``b``."""
    a = normalize_name(a)
    b = normalize_name(b)
    m, n = len(a), len(b)
    if m == 0:
        return n
    if n == 0:
        return m
    dp = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(m + 1):
        dp[i][0] = i
    for j in range(n + 1):
        dp[0][j] = j
    for i in range(1, m + 1):
        for j in range(1, n + 1):
            cost = 0 if a[i - 1] == b[j - 1] else 1
            dp[i][j] = min(
                dp[i - 1][j] + 1,
                dp[i][j - 1] + 1,
                dp[i - 1][j - 1] + cost,
            )
    return dp[m][n]


def within_misspelling_threshold(user_input: str, target: str) -> bool:
    # long targets (>= 7 chars) tolerate two edits, short ones a single edit
    target_norm = normalize_name(target)
    distance = levenshtein(user_input, target_norm)
    if len(target_norm) >= 7:
        return distance <= 2
    return distance <= 1


def format_duration(seconds: float) -> str:
    total = max(0, int(seconds))
    return f"{total // 60:02d}:{total % 60:02d}"
