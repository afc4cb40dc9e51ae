"""Small formatting helpers"""

KB = 1024
MB = 1024 * KB
GB = 1024 * MB


def format_bytes(size: int) -> str:
    """Render a byte count for log lines, e.g. 1536 -> '1.50 KB'"""
    if size >= GB:
        return f"{size / GB:.2f} GB"
    if size >= MB:
        return f"{size / MB:.2f} MB"
    if size >= KB:
        return f"{size / KB:.2f} KB"
    return f"{size} B"
