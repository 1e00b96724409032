"""
Helper functions for formatting data into human-readable strings.
"""


def format_size(bytes_size: int) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while bytes_size >= 1024 and i < len(units) - 1:
        bytes_size /= 1024
        i += 1
    return f"{bytes_size:.1f} {units[i]}"


def format_duration(seconds: float) -> str:
    """
    Formats a duration in seconds into a human-readable string (e.g., '2h 34m 12s').
    """
    s = int(seconds)
    hours, remainder = divmod(s, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def format_clock(seconds: float) -> str:
    """Formats seconds as a player clock, e.g. 272 -> '4:32'."""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes}:{secs:02d}"


def parse_clock(value: str) -> int:
    """
    Parses a 'm:ss' (or 'h:mm:ss') display duration into seconds.
    Returns 0 for anything unparsable.
    """
    total = 0
    for part in value.strip().split(":"):
        if not part.isdigit():
            return 0
        total = total * 60 + int(part)
    return total


def format_price(amount: float, currency: str = "$") -> str:
    """Formats a price with two decimals, e.g. 12.5 -> '$12.50'."""
    if amount == 0:
        return "Free"
    return f"{currency}{amount:.2f}"
