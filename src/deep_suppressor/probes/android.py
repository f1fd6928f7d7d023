# deep_suppressor/probes/android.py
"""
Android activity probe backed by ``dumpsys``.

- Foreground: the package named in the ``mCurrentFocus`` / ``mFocusedWindow``
  lines of ``dumpsys window`` (``Window{<hash> u0 <package>/<activity>}``)
- Screen: the ``mScreenState=`` value of ``dumpsys display``

One scheduler cycle checks many targets against the same focus, so the
window dump is cached for a short TTL and parsed once.
"""

from __future__ import annotations

import logging
import re
import subprocess
import time
from collections.abc import Callable, Sequence

from deep_suppressor.exceptions import ProbeError
from deep_suppressor.models import Target

logger = logging.getLogger(__name__)

FOCUS_MARKERS = ("mCurrentFocus", "mFocusedWindow")
WINDOW_RE = re.compile(r"Window\{([^}]*)\}")
SCREEN_STATE_RE = re.compile(r"mScreenState=(\S+)")


def parse_focused_packages(output: str) -> set[str]:
    """
    Extract the focused package names from ``dumpsys window`` output.

    Raises:
        ProbeError: No focus line is present at all.
    """
    found_focus_line = False
    packages: set[str] = set()
    for line in output.splitlines():
        if not any(marker in line for marker in FOCUS_MARKERS):
            continue
        found_focus_line = True
        match = WINDOW_RE.search(line)
        if not match:
            # e.g. mCurrentFocus=null while the keyguard is up
            continue
        for token in match.group(1).split():
            if "/" in token:
                package = token.split("/", 1)[0]
                if package:
                    packages.add(package)
                break

    if not found_focus_line:
        raise ProbeError("no focus line in dumpsys window output")
    return packages


def parse_screen_state(output: str) -> bool:
    """
    Read ``mScreenState`` from ``dumpsys display`` output.

    Raises:
        ProbeError: The state line is missing.
    """
    match = SCREEN_STATE_RE.search(output)
    if not match:
        raise ProbeError("no mScreenState in dumpsys display output")
    state = match.group(1)
    logger.debug(f"Screen state detected: {state}")
    return "ON" in state


class DumpsysActivityProbe:
    """ActivityProbe that shells out to ``dumpsys``."""

    def __init__(
        self,
        dumpsys: str = "dumpsys",
        timeout: float = 10.0,
        cache_ttl: float = 1.0,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.dumpsys = dumpsys
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self._monotonic = monotonic
        self._focus_cache: tuple[float, set[str]] | None = None

    def is_foreground(self, target: Target) -> bool:
        return target.app_id in self.focused_packages()

    def is_screen_on(self) -> bool:
        return parse_screen_state(self._run(["display"]))

    def focused_packages(self) -> set[str]:
        now = self._monotonic()
        if self._focus_cache is not None:
            cached_at, packages = self._focus_cache
            if now - cached_at < self.cache_ttl:
                return packages

        packages = parse_focused_packages(self._run(["window"]))
        logger.debug(f"Focused packages: {sorted(packages) or 'none'}")
        self._focus_cache = (now, packages)
        return packages

    def _run(self, args: Sequence[str]) -> str:
        command = [self.dumpsys, *args]
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout,
                check=True,
            )
        except FileNotFoundError as e:
            raise ProbeError(f"{self.dumpsys} not found") from e
        except subprocess.TimeoutExpired as e:
            raise ProbeError(f"{' '.join(command)} timed out after {self.timeout}s") from e
        except subprocess.CalledProcessError as e:
            raise ProbeError(f"{' '.join(command)} exited with {e.returncode}") from e
        except OSError as e:
            raise ProbeError(f"{' '.join(command)} failed: {e}") from e
        return result.stdout
