"""Formatting utilities shared by the TUI and CLI."""


def format_bytes(size: float) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:.1f}{unit}" if unit != "B" else f"{int(size)}B"
        size = size / 1024
    return f"{size:.1f}P"


def format_speed(bytes_per_sec: float) -> str:
    """Format a throughput, e.g. ``1.5 MB/s``."""
    for unit in ["B/s", "KB/s", "MB/s"]:
        if bytes_per_sec < 1024:
            return f"{bytes_per_sec:.1f} {unit}" if unit != "B/s" else f"{int(bytes_per_sec)} B/s"
        bytes_per_sec = bytes_per_sec / 1024
    return f"{bytes_per_sec:.1f} GB/s"


def format_duration(seconds: int) -> str:
    """Battery time left: ``2h 15m`` or ``45m``."""
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_uptime(seconds: float) -> str:
    """Uptime: ``3d 4h 5m``, ``4h 5m`` or ``5m``."""
    total = int(seconds)
    days = total // 86400
    hours = (total % 86400) // 3600
    minutes = (total % 3600) // 60
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def usage_bar(percent: float, width: int = 20, color: str = "green") -> str:
    """Rich-markup bar, ``percent`` of ``width`` cells filled."""
    filled = min(max(int(percent / 100 * width), 0), width)
    return f"[{color}]" + "█" * filled + f"[/{color}]" + "[dim]" + "░" * (width - filled) + "[/dim]"
