"""
Diff Position Encoder

Builds the `position` object GitLab uses to anchor a comment to a line of
a merge request diff.

A single-line comment is fully described by the file path, the three diff
SHAs and the old/new line numbers. A multi-line comment additionally
carries a line_range whose two boundaries each hold a line code:

    <sha1 hex of the file path>_<old line>_<new line>

GitLab recomputes this code to check the boundary is a real diff line, so
the format has to match byte for byte: full lowercase SHA-1 hex digest,
decimal line numbers, underscores between fields.
"""

import hashlib
from typing import Any, Dict, Optional

from gateway.models import LinePosition, PositionData

LINE_CODE_FORMAT = "{digest}_{old_line}_{new_line}"


def line_code(file_name: str, old_line: int, new_line: int) -> str:
    """
    Compute the GitLab line code for one diff line.

    Args:
        file_name: Path of the file in the new revision
        old_line: Line number in the old file (0 if the line is new)
        new_line: Line number in the new file (0 if the line was removed)

    Returns:
        The line code string
    """
    digest = hashlib.sha1(file_name.encode("utf-8")).hexdigest()
    return LINE_CODE_FORMAT.format(digest=digest, old_line=old_line, new_line=new_line)


def _boundary(file_name: str, boundary: LinePosition) -> Dict[str, Any]:
    return {
        "type": boundary.type,
        "old_line": boundary.old_line,
        "new_line": boundary.new_line,
        "line_code": line_code(file_name, boundary.old_line, boundary.new_line),
    }


def build_position(data: PositionData) -> Optional[Dict[str, Any]]:
    """
    Build the GitLab position for a comment or draft note.

    Args:
        data: Position fields sent by the editor

    Returns:
        The position dict, or None when no file is given (unlinked note)
    """
    if not data.file_name:
        return None

    position: Dict[str, Any] = {
        "position_type": data.type,
        "base_sha": data.base_commit_sha,
        "head_sha": data.head_commit_sha,
        "start_sha": data.start_commit_sha,
        "new_path": data.file_name,
        "old_path": data.old_file_name or data.file_name,
    }
    if data.new_line is not None:
        position["new_line"] = data.new_line
    if data.old_line is not None:
        position["old_line"] = data.old_line

    if data.line_range is not None:
        # Both boundaries hash the new path; only the line numbers differ
        position["line_range"] = {
            "start": _boundary(data.file_name, data.line_range.start),
            "end": _boundary(data.file_name, data.line_range.end),
        }

    return position
