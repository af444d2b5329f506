"""
Prompt fragments shared by the resolver and the day narrator.
"""

from castaway.models.room import StoryThread, ThreadStatus

RECENT_BEATS = 3


def format_list(values, empty: str = "none") -> str:
    values = list(values)
    return ", ".join(values) if values else empty


def format_threads_block(threads: dict[str, StoryThread], header: str = "ACTIVE PLOT THREADS") -> str:
    """Unresolved threads with their most recent beats, or "" if there are none."""
    sections = []
    for thread_id, thread in threads.items():
        if thread.status == ThreadStatus.RESOLVED:
            continue
        beats = "\n".join(f"  • {beat}" for beat in thread.recent_beats(RECENT_BEATS))
        sections.append(
            f"THREAD {thread_id}: {thread.title}\n"
            f"Status: {thread.status.value}\n"
            f"Recent beats:\n{beats or '  (none yet)'}"
        )
    if not sections:
        return ""
    return f"\n{header}:\n" + "\n\n".join(sections) + "\n"
