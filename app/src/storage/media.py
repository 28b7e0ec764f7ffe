"""
Content sniffing for uploaded videos.

Only the ISO base media ``ftyp`` box is inspected: the first box must be
``ftyp`` and one of its brands must start with ``mp4``.
"""

SNIFF_BYTES = 512


def looks_like_mp4(head: bytes) -> bool:
    """True when ``head`` (the first bytes of a file) starts an MP4 container."""
    if len(head) < 12 or head[4:8] != b"ftyp":
        return False
    box_size = int.from_bytes(head[:4], "big")
    if box_size < 12 or box_size % 4 or len(head) < box_size:
        return False
    # major brand at 8, minor version at 12, compatible brands from 16
    for offset in range(8, box_size, 4):
        if offset == 12:
            continue
        if head[offset:offset + 3] == b"mp4":
            return True
    return False
