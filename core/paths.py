"""
Path-addressed access to nested patient documents.

The intake wizard and the ``/fields`` endpoint address answers with
dotted paths such as ``medicalHistory.allergies[0]`` or
``attorney.address.city``.  A path is parsed into a list of segments:
strings select dict keys, integers select list positions.
"""
from __future__ import annotations

import copy
import re
from typing import Any, Dict, List, Union

Segment = Union[str, int]

_MISSING = object()
_KEY = re.compile(r"[^.\[\]]+")


class PathError(ValueError):
    """Raised for malformed paths or writes through a scalar value."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{message}: {path!r}")
        self.path = path
        self.message = message


def parse_path(path: str) -> List[Segment]:
    if not isinstance(path, str) or not path.strip():
        raise PathError(str(path), 'empty path')
    segments: List[Segment] = []
    pos = 0
    expect_key = True
    while pos < len(path):
        ch = path[pos]
        if ch == '.':
            if expect_key:
                raise PathError(path, 'empty segment')
            expect_key = True
            pos += 1
            continue
        if ch == '[':
            end = path.find(']', pos)
            if end == -1:
                raise PathError(path, 'unterminated index')
            if expect_key and segments:
                raise PathError(path, 'empty segment')
            raw = path[pos + 1:end]
            if not raw.isdigit():
                raise PathError(path, 'index must be a non-negative integer')
            segments.append(int(raw))
            expect_key = False
            pos = end + 1
            continue
        if ch == ']':
            raise PathError(path, 'unexpected ]')
        if not expect_key:
            raise PathError(path, 'missing separator')
        match = _KEY.match(path, pos)
        segments.append(match.group(0))
        expect_key = False
        pos = match.end()
    if expect_key:
        raise PathError(path, 'empty segment')
    return segments


def _step(node: Any, seg: Segment) -> Any:
    if isinstance(seg, int):
        if isinstance(node, list) and seg < len(node):
            return node[seg]
        return _MISSING
    if isinstance(node, dict):
        return node.get(seg, _MISSING)
    return _MISSING


def get_path(doc: Any, path: str, default: Any = None) -> Any:
    node = doc
    for seg in parse_path(path):
        node = _step(node, seg)
        if node is _MISSING:
            return default
    return node


def _container_for(seg: Segment) -> Union[Dict[str, Any], List[Any]]:
    return [] if isinstance(seg, int) else {}


def _check_container(node: Any, seg: Segment, path: str) -> None:
    if isinstance(seg, int) and not isinstance(node, list):
        raise PathError(path, f'cannot index {type(node).__name__} with [{seg}]')
    if isinstance(seg, str) and not isinstance(node, dict):
        raise PathError(path, f'cannot read key {seg!r} from {type(node).__name__}')


def set_path(doc: Any, path: str, value: Any) -> Any:
    """Set ``value`` at ``path`` inside ``doc`` in place and return ``doc``.

    Missing intermediate containers are created: a dict when the next
    segment is a key, a list when it is an index.  Lists are padded with
    ``None`` up to the requested position.
    """
    segments = parse_path(path)
    node = doc
    for seg, nxt in zip(segments, segments[1:]):
        _check_container(node, seg, path)
        child = _step(node, seg)
        if child is _MISSING or child is None:
            child = _container_for(nxt)
            _assign(node, seg, child)
        node = child
    last = segments[-1]
    _check_container(node, last, path)
    _assign(node, last, value)
    return doc


def _assign(node: Any, seg: Segment, value: Any) -> None:
    if isinstance(seg, int):
        if len(node) <= seg:
            node.extend([None] * (seg + 1 - len(node)))
        node[seg] = value
    else:
        node[seg] = value


def delete_path(doc: Any, path: str) -> bool:
    """Remove the key or list element at ``path``; return whether it existed."""
    segments = parse_path(path)
    node = doc
    for seg in segments[:-1]:
        node = _step(node, seg)
        if node is _MISSING:
            return False
    last = segments[-1]
    if isinstance(last, int):
        if isinstance(node, list) and last < len(node):
            del node[last]
            return True
        return False
    if isinstance(node, dict) and last in node:
        del node[last]
        return True
    return False


def apply_changes(doc: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
    """Return a deep copy of ``doc`` with every ``{path: value}`` change applied in order."""
    result = copy.deepcopy(doc)
    for path, value in changes.items():
        set_path(result, path, value)
    return result
