import time


# Current wall-clock time in integer milliseconds since the epoch. This is the clock every timer record is stamped
# with, since persisted timestamps have to stay meaningful across process restarts.
def now_ms():
    return int(time.time() * 1000)

# Format elapsed milliseconds as HH:MM:SS. Negative values clamp to zero.
def format_duration(milliseconds):
    seconds = max(0, int(milliseconds) // 1000)
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"
