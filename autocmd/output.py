"""
Output sink for AutoCMD.

Status text is gated by verbosity, mirrored command output never is,
and diagnostics always go to the error stream.
"""

import sys
from typing import Optional, TextIO, Union

# ANSI escape codes
RESET = "\033[0m"
BOLD = "\033[1m"
ITALIC = "\033[3m"
RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
BLUE = "\033[94m"


class OutputSink:
    """
    Destination for everything AutoCMD writes to the user.

    Args:
        stdout: Stream for status text and mirrored stdout (default: sys.stdout)
        stderr: Stream for diagnostics and mirrored stderr (default: sys.stderr)
        verbose: If False, status text is suppressed
        color: If True, status text is colourised with ANSI codes
    """

    def __init__(
        self,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
        verbose: bool = True,
        color: bool = False
    ):
        self._stdout = stdout
        self._stderr = stderr
        self.verbose = verbose
        self.color = color

    # Resolved lazily so a redirected sys.stdout/sys.stderr is honoured
    @property
    def stdout(self) -> TextIO:
        return self._stdout if self._stdout is not None else sys.stdout

    @property
    def stderr(self) -> TextIO:
        return self._stderr if self._stderr is not None else sys.stderr

    def highlight(self, text, *styles: str) -> str:
        """Wrap text in the given ANSI styles when colouring is enabled."""
        text = str(text)
        if not self.color or not styles:
            return text
        return f"{''.join(styles)}{text}{RESET}"

    def status(self, message: str):
        """Write a status line to stdout if verbose."""
        if self.verbose:
            print(message, file=self.stdout, flush=True)

    def blank(self):
        """Write an empty line to stdout if verbose."""
        if self.verbose:
            print(file=self.stdout, flush=True)

    def mirror(self, stdout_data: Union[bytes, str], stderr_data: Union[bytes, str]):
        """Write captured command output verbatim, regardless of verbosity."""
        _write_verbatim(self.stdout, stdout_data)
        _write_verbatim(self.stderr, stderr_data)

    def error(self, message: str):
        """Write a diagnostic line to stderr."""
        print(message, file=self.stderr, flush=True)


def _write_verbatim(stream: TextIO, data: Union[bytes, str]):
    """
    Write command output to a stream without re-encoding it.

    Bytes go straight to the stream's binary buffer when it has one, so
    output survives whatever encoding the text layer uses.
    """
    if not data:
        return

    buffer = getattr(stream, "buffer", None)
    if isinstance(data, str):
        if buffer is None:
            stream.write(data)
            stream.flush()
            return
        data = data.encode("utf-8", errors="replace")

    if buffer is None:
        stream.write(data.decode("utf-8", errors="replace"))
        stream.flush()
        return

    # Anything already written through the text layer must come first
    stream.flush()
    buffer.write(data)
    buffer.flush()
