"""
Filename based classification of uploaded videos.

Rules are evaluated top to bottom against the lower-cased filename and the first
match wins, so class-number rules always beat gym keywords ("Class 9 yoga.mp4"
lands in Class 9).
"""
import re
from datetime import datetime, timezone

from constants import CATEGORIES, DEFAULT_CATEGORY
from errors import InvalidCategory


def _class_pattern(number):
	return re.compile(
		rf"class\s*{number}|class{number}|ch\.?{number}|chapter\s*{number}|{number}th",
		re.IGNORECASE
	)

# (pattern, category, priority) - order matters
CLASSIFICATION_RULES = [
	(_class_pattern(7), 'Class 7', 1),
	(_class_pattern(8), 'Class 8', 1),
	(_class_pattern(9), 'Class 9', 1),
	(_class_pattern(10), 'Class 10', 1),
	(
		re.compile(r"gym|workout|exercise|fitness|training|cardio|yoga|pushup|squat", re.IGNORECASE),
		'Gym Videos',
		2
	),
]

def utc_now():
	return datetime.now(timezone.utc).isoformat()

def classify_video(filename):
	"""
	Classify a video by its filename.
	Returns {category, autoClassified, confidence, matchedRule}.
	"""
	lower_filename = filename.lower()

	for pattern, category, _priority in CLASSIFICATION_RULES:
		if pattern.search(lower_filename):
			return {
				'category': category,
				'autoClassified': True,
				'confidence': 'high',
				'matchedRule': pattern.pattern
			}

	return {
		'category': DEFAULT_CATEGORY,
		'autoClassified': True,
		'confidence': 'default',
		'matchedRule': None
	}

def manual_classify(category):
	"""
	Build a manual override for a category chosen by the user.
	Raises InvalidCategory if the category is not one of CATEGORIES.
	"""
	if category not in CATEGORIES:
		raise InvalidCategory(category)

	return {
		'category': category,
		'autoClassified': False,
		'manualOverride': True,
		'classifiedAt': utc_now()
	}

def bulk_classify(filenames):
	return [dict(filename=filename, **classify_video(filename)) for filename in filenames]

def get_suggestions(partial_name):
	"""
	Every category whose rule matches a partial name, used while the user types.
	"""
	lower_name = partial_name.lower()
	suggestions = [
		{'category': category, 'confidence': 'high'}
		for pattern, category, _priority in CLASSIFICATION_RULES
		if pattern.search(lower_name)
	]
	if not suggestions:
		suggestions.append({'category': DEFAULT_CATEGORY, 'confidence': 'default'})
	return suggestions
