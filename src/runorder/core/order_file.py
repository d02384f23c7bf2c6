"""Reading explicit test order files.

An order file is plain UTF-8 text with one fully-qualified test name per
line. There is no header, comment syntax or escaping; file order is
priority order.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class OrderFileResult:
    """Lines read from an order file.

    When reading fails part way, ``lines`` holds everything read before
    the failure and ``error`` describes it.
    """

    path: Optional[Path] = None
    lines: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        """Check if the whole file was read."""
        return self.error is None


def read_order_file(path: Optional[Path | str]) -> OrderFileResult:
    """Read an order file top to bottom.

    Never raises for I/O problems; they are reported through
    ``OrderFileResult.error``.

    Args:
        path: Path to the order file

    Returns:
        OrderFileResult with the stripped lines, in file order
    """
    if path is None:
        return OrderFileResult(error="No order file configured")

    path = Path(path)
    result = OrderFileResult(path=path)

    try:
        # Decoded line by line so a bad line keeps everything before it
        with open(path, "rb") as f:
            for number, raw in enumerate(f, start=1):
                result.lines.append(raw.decode("utf-8").strip())
    except FileNotFoundError:
        result.error = f"Order file not found: {path}"
    except UnicodeDecodeError as e:
        result.error = f"Error decoding order file {path} at line {number}: {e}"
    except OSError as e:
        result.error = f"Error reading order file {path}: {e}"

    return result
