from pastebox.logger import get_logger

log = get_logger("lifecycle")

SECONDS_PER_DAY = 86400
DEFAULT_EXPIRY_SECONDS = 60 * 60 * 24 * 7

EXPIRY_CHOICES = {
    "1min": 60,
    "10min": 60 * 10,
    "1hour": 60 * 60,
    "24hour": 60 * 60 * 24,
    "3days": 60 * 60 * 24 * 3,
    "1week": DEFAULT_EXPIRY_SECONDS,
    "never": None,
}

BURN_AFTER_CHOICES = {"0": 0, "1": 1, "10": 10, "100": 100, "1000": 1000, "10000": 10000}


def is_evictable(paste, now: int, gc_days: int) -> bool:
    """True once a paste expired, ran out of reads, or sat unread too long."""
    if paste.expiration != 0 and paste.expiration <= now:
        return True
    if paste.burn_after_reads != 0 and paste.read_count >= paste.burn_after_reads:
        return True
    if gc_days != 0 and paste.last_read_days_ago(now) >= gc_days:
        return True
    return False


def expiration_to_timestamp(expiry: str, now: int, eternal_allowed: bool) -> int:
    """Absolute expiry for a creation request; 0 means never."""
    if expiry not in EXPIRY_CHOICES:
        log.error("Unexpected expiration time %r", expiry)
        return now + DEFAULT_EXPIRY_SECONDS
    seconds = EXPIRY_CHOICES[expiry]
    if seconds is None:
        return 0 if eternal_allowed else now + DEFAULT_EXPIRY_SECONDS
    return now + seconds


def parse_burn_after(value) -> int:
    key = str(value).strip()
    if key not in BURN_AFTER_CHOICES:
        log.error("Unexpected burn after value %r", value)
        return 0
    return BURN_AFTER_CHOICES[key]
