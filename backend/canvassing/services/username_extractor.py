"""
Handle extraction from chat-screenshot OCR text.

The prospect's handle reliably appears in the chat header (the top of the
screenshot): "Anda memulai obrolan dengan <handle>", "<handle> · Obrolan
bisnis", "@<handle>", "<handle> 1.234 pengikut", and so on. The message body
below it is full of long marketing words that look like handles, so every
strategy only ever sees the header window (first HEADER_WINDOW characters of
whitespace-normalized text).

Strategies are pure functions `(header, stoplist) -> handle | None`, tried in
priority order; the first one that yields an acceptable handle wins:

    a. started_conversation   "memulai obrolan dengan X" / "started a conversation with X"
    b. business_chat_label    "X obrolan bisnis" / "X business chat"
    c. conversation_with      "obrolan dengan X" / "chat with X" / "obrolan bisnis X"
    d. mention                "@X"
    e. back_glyph             "< X" (back arrow in front of the header title)
    f. after_display_name     "Kopi Senja X" near the very top
    g. before_followers       "X 1.234 pengikut"
    h. around_joined          "X ... Bergabung Maret 2021" / "joined March 2021 X"
    i. near_header_context    any token next to header words, away from body words
    j. last_resort_*          shrinking prefixes (500/200/150 chars), ever more permissive

Acceptance is the same for canvassing and follow-ups: after cleanup the handle
is at least MIN_HANDLE_LENGTH characters, contains a letter and is not a
stoplist word. Some strategies additionally require an underscore and
STRICT_HANDLE_LENGTH characters because their pattern alone is weak evidence.
"""
import logging
import re

logger = logging.getLogger(__name__)

HEADER_WINDOW = 1000
MIN_HANDLE_LENGTH = 8
STRICT_HANDLE_LENGTH = 10
CONTEXT_RADIUS = 30

_HANDLE = r"[A-Za-z0-9._]"

# Message vocabulary that must never be taken for a handle.
DEFAULT_STOPLIST = frozenset({
    # chat / profile UI
    "instagram", "pengikut", "followers", "following", "postingan", "posts", "obrolan", "bisnis",
    "business", "conversation", "memulai", "dengan", "lihat", "profil", "profile", "tanyakan",
    "bergabung", "joined", "hari", "today", "yesterday", "kemarin", "terkirim", "dilihat",
    "seen", "delivered", "message", "messages", "pesan", "kirim", "balas", "akun",
    # greetings / connectors
    "halo", "hallo", "selamat", "terima", "terimakasih", "kasih", "perkenalkan", "sebelumnya",
    "kakak", "nanti", "sekarang", "makanya", "langsung", "sebenarnya", "mungkin", "sampai",
    # product / offer vocabulary
    "stiqr", "bhanu", "qris", "kasir", "kasirnya", "aplikasi", "gratis", "mdr", "umkm",
    "transaksi", "whatsapp", "nomor", "nama", "usaha", "langganan", "biaya", "operasional",
    "ekosistem", "otomatis", "festival", "exposure", "efisien", "berkembang", "inflasi",
    "bazar", "bazaar", "event", "promo", "merchant", "pembayaran", "digital",
})

# Words that place a token in the chat header.
HEADER_CONTEXT_WORDS = (
    "obrolan", "bisnis", "chat", "business", "conversation", "pengikut", "followers",
    "postingan", "posts", "bergabung", "joined", "profil", "profile", "instagram",
)

# Words that place a token in a message bubble.
BODY_KEYWORDS = (
    "halo", "hallo", "perkenalkan", "stiqr", "qris", "kasir", "aplikasi", "gratis", "biaya",
    "transaksi", "whatsapp", "langganan", "umkm", "promo", "usaha", "terima kasih", "selamat",
    "day", "bhanu", "mdr",
)

_HEADER_CONTEXT_RE = re.compile(r"\b(?:" + "|".join(HEADER_CONTEXT_WORDS) + r")\b", re.I)
_BODY_KEYWORD_RE = re.compile(r"\b(?:" + "|".join(re.escape(w) for w in BODY_KEYWORDS) + r")\b", re.I)


# ─── Shared helpers ──────────────────────────────────────────────────────────

def normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def header_window(text: str) -> str:
    """Leading part of the OCR text where the chat header sits."""
    return normalize_whitespace(text)[:HEADER_WINDOW]


def clean_handle(candidate: str) -> str:
    """Lowercase and strip OCR/truncation debris ("grandwis..." -> "grandwis")."""
    handle = (candidate or "").strip().lower()
    handle = re.sub(r"\.{2,}$", "", handle)
    return handle.strip("._")


def accept_handle(candidate: str, stoplist=DEFAULT_STOPLIST, strict: bool = False) -> str | None:
    """Return the cleaned handle if it passes acceptance, else None."""
    handle = clean_handle(candidate)
    if len(handle) < MIN_HANDLE_LENGTH or handle in stoplist:
        return None
    if not re.search(r"[a-z]", handle):
        return None
    if strict and ("_" not in handle or len(handle) < STRICT_HANDLE_LENGTH):
        return None
    return handle


def _surroundings(header: str, start: int, end: int, radius: int = CONTEXT_RADIUS) -> str:
    return header[max(0, start - radius):start] + " " + header[end:end + radius]


def near_body_keywords(header: str, start: int, end: int) -> bool:
    return bool(_BODY_KEYWORD_RE.search(_surroundings(header, start, end)))


def near_header_words(header: str, start: int, end: int) -> bool:
    return bool(_HEADER_CONTEXT_RE.search(_surroundings(header, start, end)))


def _first_accepted(pattern: re.Pattern, text: str, stoplist, strict: bool = False, group: int = 1):
    for match in pattern.finditer(text):
        handle = accept_handle(match.group(group), stoplist, strict=strict)
        if handle:
            return handle
    return None


# ─── Strategies (highest priority first) ─────────────────────────────────────

_STARTED_CONVERSATION_RE = re.compile(
    r"(?:memulai\s+obrolan\s+dengan|started\s+a\s+(?:conversation|chat)\s+with)\s+@?(" + _HANDLE + r"{3,40})",
    re.I,
)
_BUSINESS_CHAT_LABEL_RE = re.compile(
    r"(" + _HANDLE + r"{3,40})\s*[·•|-]?\s*(?:obrolan\s+bisnis|business\s*-?\s*chat)\b",
    re.I,
)
_CONVERSATION_WITH_RE = re.compile(
    r"(?:obrolan|chat|conversation)\s+(?:dengan|with|bisnis|business)\s+@?(" + _HANDLE + r"{3,40})",
    re.I,
)
_MENTION_RE = re.compile(r"(?<![\w.])@(" + _HANDLE + r"{3,40})")
_BACK_GLYPH_RE = re.compile(r"[<‹←〈«]\s*(" + _HANDLE + r"{3,40})")
_DISPLAY_NAME_RE = re.compile(r"(?:\b[A-Z][A-Za-z&']*\s+){1,4}([a-z0-9][a-z0-9._]{7,39})(?![A-Za-z0-9_])")
_FOLLOWERS_RE = re.compile(
    r"(" + _HANDLE + r"{8,40})\s*[·•]?\s*(?:\d[\d.,]*\s*(?:rb|jt|[kmb])?\s*)?(?:pengikut|followers)\b",
    re.I,
)
_JOINED_RE = re.compile(r"\b(?:bergabung|joined)\b", re.I)
_JOINED_AFTER_RE = re.compile(
    r"\b(?:bergabung|joined)\s+(?:sejak\s+|since\s+|in\s+)?[A-Za-z]+\s+\d{4}\s*[·•]?\s*(" + _HANDLE + r"{8,40})",
    re.I,
)
_TOKEN_RE = re.compile(r"[A-Za-z0-9_]{8,40}")
_DOTTED_TOKEN_RE = re.compile(_HANDLE + r"{8,40}")

DISPLAY_NAME_WINDOW = 300
DISPLAY_NAME_EARLY_OVERRIDE = 150
JOINED_LOOKBEHIND = 80


def started_conversation(header: str, stoplist=DEFAULT_STOPLIST) -> str | None:
    return _first_accepted(_STARTED_CONVERSATION_RE, header, stoplist)


def business_chat_label(header: str, stoplist=DEFAULT_STOPLIST) -> str | None:
    return _first_accepted(_BUSINESS_CHAT_LABEL_RE, header, stoplist)


def conversation_with(header: str, stoplist=DEFAULT_STOPLIST) -> str | None:
    return _first_accepted(_CONVERSATION_WITH_RE, header, stoplist)


def mention(header: str, stoplist=DEFAULT_STOPLIST) -> str | None:
    return _first_accepted(_MENTION_RE, header, stoplist)


def back_glyph(header: str, stoplist=DEFAULT_STOPLIST) -> str | None:
    return _first_accepted(_BACK_GLYPH_RE, header, stoplist)


def after_display_name(header: str, stoplist=DEFAULT_STOPLIST) -> str | None:
    """
    Instagram shows the display name ("Kopi Senja") right before the handle.
    Very early hits are trusted outright; later ones must not sit in a message.
    """
    top = header[:DISPLAY_NAME_WINDOW]
    for match in _DISPLAY_NAME_RE.finditer(top):
        handle = accept_handle(match.group(1), stoplist)
        if not handle:
            continue
        start, end = match.span(1)
        if start < DISPLAY_NAME_EARLY_OVERRIDE or not near_body_keywords(top, start, end):
            return handle
    return None


def before_followers(header: str, stoplist=DEFAULT_STOPLIST) -> str | None:
    return _first_accepted(_FOLLOWERS_RE, header, stoplist, strict=True)


def around_joined(header: str, stoplist=DEFAULT_STOPLIST) -> str | None:
    for marker in _JOINED_RE.finditer(header):
        # nearest handle-looking token in front of the marker
        lookbehind_start = max(0, marker.start() - JOINED_LOOKBEHIND)
        before = header[lookbehind_start:marker.start()]
        for match in reversed(list(_DOTTED_TOKEN_RE.finditer(before))):
            token = match.group(0)
            if not re.search(r"[._\d]", token):
                continue
            handle = accept_handle(token, stoplist)
            if handle:
                return handle

    return _first_accepted(_JOINED_AFTER_RE, header, stoplist)


def near_header_context(header: str, stoplist=DEFAULT_STOPLIST) -> str | None:
    for match in _TOKEN_RE.finditer(header):
        handle = accept_handle(match.group(0), stoplist, strict=True)
        if not handle:
            continue
        start, end = match.span()
        if near_header_words(header, start, end) and not near_body_keywords(header, start, end):
            return handle
    return None


def _scan_prefix(header: str, limit: int, stoplist, token_filter) -> str | None:
    prefix = header[:limit]
    for match in _DOTTED_TOKEN_RE.finditer(prefix):
        token = match.group(0)
        if not token_filter(token):
            continue
        handle = accept_handle(token, stoplist)
        if handle and not near_body_keywords(prefix, *match.span()):
            return handle
    return None


def last_resort_500(header: str, stoplist=DEFAULT_STOPLIST) -> str | None:
    """Underscore or inner dot: the shape of a handle rather than a word."""
    return _scan_prefix(header, 500, stoplist, lambda t: "_" in t.strip("._") or "." in t.strip("._"))


def last_resort_200(header: str, stoplist=DEFAULT_STOPLIST) -> str | None:
    """Digits or underscores anywhere near the top."""
    return _scan_prefix(header, 200, stoplist, lambda t: bool(re.search(r"[\d_]", t)))


def last_resort_150(header: str, stoplist=DEFAULT_STOPLIST) -> str | None:
    """Any lowercase token in the first line or two."""
    return _scan_prefix(header, 150, stoplist, lambda t: t == t.lower())


DEFAULT_STRATEGIES = (
    started_conversation,
    business_chat_label,
    conversation_with,
    mention,
    back_glyph,
    after_display_name,
    before_followers,
    around_joined,
    near_header_context,
    last_resort_500,
    last_resort_200,
    last_resort_150,
)


class UsernameExtractor:
    """Runs the strategy chain over the header window of OCR text."""

    def __init__(self, stoplist=DEFAULT_STOPLIST, strategies=DEFAULT_STRATEGIES):
        self.stoplist = frozenset(stoplist)
        self.strategies = tuple(strategies)

    def extract(self, raw_text: str) -> str | None:
        return self.extract_from_header(header_window(raw_text))

    def extract_from_header(self, header: str) -> str | None:
        if not header:
            return None

        for strategy in self.strategies:
            candidate = strategy(header, self.stoplist)
            if candidate is None:
                continue
            handle = accept_handle(candidate, self.stoplist)
            if handle:
                logger.info("Handle %r extracted by strategy %s", handle, strategy.__name__)
                return handle

        logger.warning("No handle found in header: %r", header[:200])
        return None
