from unittest import TestCase

from chat_relay.backend.errors import NormalizationError
from chat_relay.backend.services.message_normalizer import normalize, reflow_markdown, strip_citations


class StripCitationsTests(TestCase):
	def test_removes_retrieval_markers(self) -> None:
		self.assertEqual(strip_citations("The sky is blue【4:0†source】."), "The sky is blue.")

	def test_removes_doc_and_numeric_markers_with_leading_space(self) -> None:
		self.assertEqual(strip_citations("See this [doc1] and [2]."), "See this and.")
		self.assertEqual(strip_citations("Grounded claim [3:1] here"), "Grounded claim here")

	def test_keeps_numbered_links(self) -> None:
		text = "Read [1](https://example.com) first"
		self.assertEqual(strip_citations(text), text)

	def test_leaves_code_fences_untouched(self) -> None:
		text = "Before [1]\n```\nx = a[1]\n```"
		self.assertEqual(strip_citations(text), "Before\n```\nx = a[1]\n```")

	def test_collapses_inner_space_runs_but_not_indentation(self) -> None:
		self.assertEqual(strip_citations("alpha   beta"), "alpha beta")
		self.assertEqual(strip_citations("intro\n  - nested"), "intro\n  - nested")

	def test_plain_text_passes_through(self) -> None:
		self.assertEqual(strip_citations("Namaste! How can I help?"), "Namaste! How can I help?")


class ReflowMarkdownTests(TestCase):
	def test_splits_inline_list_onto_paragraphs(self) -> None:
		self.assertEqual(reflow_markdown("Do this: - one\n- two"), "Do this:\n\n- one\n\n- two")

	def test_numbered_list_after_single_break(self) -> None:
		self.assertEqual(reflow_markdown("Steps\n1. Open\n2. Close"), "Steps\n\n1. Open\n\n2. Close")

	def test_trims_trailing_whitespace_and_blank_runs(self) -> None:
		self.assertEqual(reflow_markdown("line   \nnext\n\n\n\nend  "), "line\nnext\n\nend")

	def test_code_fence_keeps_its_layout(self) -> None:
		text = "Example:\n\n```\nitems:\n- a\n- b\n```"
		self.assertEqual(reflow_markdown(text), text)


class NormalizeTests(TestCase):
	def test_is_idempotent(self) -> None:
		samples = [
			"Answer【1:0†doc】: 1. First [2] 2. Second\n\n\n\nDone.  ",
			"Intro\n- a [doc1]\n- b\n```\ncode [1]   here\n```\ntail [3]",
			"Plain text.",
			"x ``[1]` y ```z [2]```",
			"",
		]
		for sample in samples:
			once = normalize(sample)
			self.assertEqual(normalize(once), once, sample)

	def test_empty_string_stays_empty(self) -> None:
		self.assertEqual(normalize(""), "")

	def test_rejects_non_text(self) -> None:
		with self.assertRaises(NormalizationError):
			normalize(None)  # type: ignore[arg-type]
