"""
Video Progress Tracker
Simulated playback clock, milestone tracking and embed URL rules
"""

import re
from typing import List, Optional

SIMULATED_DURATION_SECONDS = 600
PERSIST_INTERVAL_SECONDS = 10
MILESTONES = (25, 50, 75, 100)

# Resume is offered only between these bounds
RESUME_MIN_SECONDS = 10
RESUME_TAIL_SECONDS = 30

YOUTUBE_WATCH = re.compile(r"youtube\.com/watch\?(?:.*&)?v=([\w-]+)")
YOUTUBE_SHORT = re.compile(r"youtu\.be/([\w-]+)")
VIMEO = re.compile(r"vimeo\.com/(?:video/)?(\d+)")


def embed_url(url: Optional[str]) -> str:
    """Turn a watch/share link into an embeddable player URL"""
    if not url:
        return ""

    match = YOUTUBE_WATCH.search(url) or YOUTUBE_SHORT.search(url)
    if match:
        return f"https://www.youtube.com/embed/{match.group(1)}?enablejsapi=1"

    match = VIMEO.search(url)
    if match and "player.vimeo.com" not in url:
        return f"https://player.vimeo.com/video/{match.group(1)}"

    return url


def resume_position(position: Optional[float], duration: float = SIMULATED_DURATION_SECONDS) -> Optional[float]:
    """Saved position worth offering, or None"""
    if position is None:
        return None
    if RESUME_MIN_SECONDS < position < duration - RESUME_TAIL_SECONDS:
        return position
    return None


class PlaybackSession:
    """
    Client-side playback clock.

    States: idle -> playing <-> paused -> completed.
    tick() advances the position by seconds * playback_rate while playing;
    reaching the duration completes the session and fires the 100 milestone.
    """

    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    COMPLETED = "completed"

    def __init__(
        self,
        duration: float = SIMULATED_DURATION_SECONDS,
        start_position: float = 0,
        playback_rate: float = 1.0
    ):
        self.duration = duration
        self.position = min(max(start_position, 0), duration)
        self.playback_rate = playback_rate
        self.state = self.IDLE
        self.fired_milestones = set()
        self._since_persist = 0.0

    @property
    def percent(self) -> int:
        if self.duration <= 0:
            return 0
        return round(self.position / self.duration * 100)

    def play(self):
        if self.state != self.COMPLETED:
            self.state = self.PLAYING

    def pause(self):
        if self.state == self.PLAYING:
            self.state = self.PAUSED

    def seek(self, position: float):
        if self.state != self.COMPLETED:
            self.position = min(max(position, 0), self.duration)

    def tick(self, seconds: float = 1.0) -> List[int]:
        """Advance the clock; returns milestones reached by this tick"""
        if self.state != self.PLAYING:
            return []

        advance = seconds * self.playback_rate
        self.position = min(self.position + advance, self.duration)
        self._since_persist += advance

        if self.position >= self.duration:
            self.state = self.COMPLETED

        return self._collect_milestones()

    def _collect_milestones(self) -> List[int]:
        reached = []
        for milestone in MILESTONES:
            if milestone in self.fired_milestones:
                continue
            if self.percent >= milestone or (milestone == 100 and self.state == self.COMPLETED):
                self.fired_milestones.add(milestone)
                reached.append(milestone)
        return reached

    def should_persist(self) -> bool:
        """True once per PERSIST_INTERVAL_SECONDS of playback"""
        if self._since_persist >= PERSIST_INTERVAL_SECONDS:
            self._since_persist = 0.0
            return True
        return False

    @property
    def completed(self) -> bool:
        return self.state == self.COMPLETED
