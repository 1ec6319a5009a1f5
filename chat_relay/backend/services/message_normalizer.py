"""Cleanup of assistant text before it reaches the chat UI.

Two passes, both applied to prose only (fenced code blocks are left alone):

- ``strip_citations`` removes retrieval citation markers such as
  ``【4:0†source】``, ``[doc2]``, ``[3]`` and ``[3:1]``.
- ``reflow_markdown`` puts list items on their own paragraph so a markdown
  renderer shows them as a list, then tidies blank lines and trailing spaces.

``normalize`` composes the two and is idempotent.
"""
from __future__ import annotations

import re
from typing import Callable

from chat_relay.backend.errors import NormalizationError


_FENCE_RE = re.compile(r"(```[\s\S]*?```)")

_CITATION_PATTERNS = (
	re.compile(r"[ \t]*【\d+(?::\d+)?†[^】\n]*】"),
	re.compile(r"[ \t]*\[doc\d+\]"),
	# [1](https://...) is a link, not a citation.
	re.compile(r"[ \t]*\[\d+(?::\d+)?\](?!\()"),
)
_INNER_SPACES_RE = re.compile(r"(?<=\S)[ \t]{2,}")

_LIST_MARKER = r"(?:\d+\.|[-*])[ \t]"
_TRAILING_WS_RE = re.compile(r"[ \t]+(?=\n)")
_INLINE_LIST_RE = re.compile(r"([.:;!?])[ \t]+(?=" + _LIST_MARKER + ")")
_SINGLE_BREAK_LIST_RE = re.compile(r"([^\n])\n(?=" + _LIST_MARKER + ")")
_BLANK_RUN_RE = re.compile(r"\n{3,}")


def _map_prose(text: str, transform: Callable[[str], str]) -> str:
	parts = _FENCE_RE.split(text)
	for index in range(0, len(parts), 2):
		parts[index] = transform(parts[index])
	return "".join(parts)


def _strip_prose(text: str) -> str:
	previous = None
	while previous != text:
		previous = text
		for pattern in _CITATION_PATTERNS:
			text = pattern.sub("", text)
	return _INNER_SPACES_RE.sub(" ", text)


def _reflow_prose(text: str) -> str:
	text = _TRAILING_WS_RE.sub("", text)
	text = _INLINE_LIST_RE.sub("\\1\n\n", text)
	text = _SINGLE_BREAK_LIST_RE.sub("\\1\n\n", text)
	return _BLANK_RUN_RE.sub("\n\n", text)


def strip_citations(text: str) -> str:
	# Removing a marker can fuse backticks into a new fence, so re-split each pass.
	previous = None
	while previous != text:
		previous = text
		text = _map_prose(text, _strip_prose)
	return text.strip()


def reflow_markdown(text: str) -> str:
	return _map_prose(text, _reflow_prose).strip()


def normalize(raw: str) -> str:
	if not isinstance(raw, str):
		raise NormalizationError(f"Cannot normalize {type(raw).__name__}; expected str.")
	return reflow_markdown(strip_citations(raw))
