from __future__ import annotations

from typing import Dict, Optional

from chat_relay.backend import constants


_GENERIC_ERROR = "generic_error"

_ERROR_TEXT: Dict[str, Dict[str, str]] = {
	"en": {
		"validation_error": "Please type a message first.",
		"invalid_credential": "Your sign-in is invalid or has expired. Please sign in again.",
		"configuration_error": "The assistant is not configured correctly. Please contact the administrator.",
		"turn_conflict": "Still working on your previous message. Please wait a moment.",
		"run_timeout": "The assistant took too long to answer. Please try again.",
		"run_failed": "The assistant could not answer this time. Please try again.",
		_GENERIC_ERROR: "Sorry, I encountered an error. Please try again.",
	},
	"ne": {
		"validation_error": "कृपया पहिले सन्देश लेख्नुहोस्।",
		"invalid_credential": "तपाईंको साइन-इन अमान्य छ वा म्याद सकिएको छ। कृपया फेरि साइन इन गर्नुहोस्।",
		"configuration_error": "सहायक सही रूपमा कन्फिगर गरिएको छैन। कृपया प्रशासकलाई सम्पर्क गर्नुहोस्।",
		"turn_conflict": "तपाईंको अघिल्लो सन्देशमा काम भइरहेको छ। कृपया केही बेर पर्खनुहोस्।",
		"run_timeout": "सहायकले जवाफ दिन धेरै समय लियो। कृपया फेरि प्रयास गर्नुहोस्।",
		"run_failed": "सहायकले यस पटक जवाफ दिन सकेन। कृपया फेरि प्रयास गर्नुहोस्।",
		_GENERIC_ERROR: "माफ गर्नुहोस्, त्रुटि भयो। कृपया फेरि प्रयास गर्नुहोस्।",
	},
}


def resolve_language(value: Optional[str]) -> str:
	"""Map ``ne``, ``ne-NP``, ``NE`` and friends onto a supported language."""
	if not value:
		return constants.DEFAULT_LANGUAGE
	primary = value.strip().lower().replace("_", "-").split("-", 1)[0]
	return primary if primary in constants.SUPPORTED_LANGUAGES else constants.DEFAULT_LANGUAGE


def error_text(code: str, language: Optional[str] = None) -> str:
	catalog = _ERROR_TEXT[resolve_language(language)]
	return catalog.get(code, catalog[_GENERIC_ERROR])
