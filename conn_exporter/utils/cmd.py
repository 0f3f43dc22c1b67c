from __future__ import annotations
import logging
import subprocess
from typing import List, Sequence

from ..errors import CommandUnavailable

log = logging.getLogger(__name__)


class SubprocessRunner:
    """Runs a diagnostic command and returns its stdout as text."""

    def run(self, argv: Sequence[str]) -> str:
        return subprocess.check_output(list(argv), text=True, stderr=subprocess.DEVNULL)


def run_first(runner, candidates: Sequence[str], args: Sequence[str]) -> str:
    """Try each candidate executable path in turn; the first that runs wins.

    Services started by systemd often have a minimal PATH, so the bare name is
    followed by the usual absolute locations.
    """
    errors: List[str] = []
    for exe in candidates:
        argv = [exe, *args]
        try:
            out = runner.run(argv)
        except (OSError, subprocess.CalledProcessError) as e:
            log.debug("failed to run %s: %s", " ".join(argv), e)
            errors.append(f"{exe}: {e}")
            continue
        log.debug("ran %s", " ".join(argv))
        return out
    raise CommandUnavailable(f"{' '.join(args)}: no working candidate ({'; '.join(errors)})")
