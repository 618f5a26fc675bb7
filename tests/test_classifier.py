import pytest

from classifier import (
	CLASSIFICATION_RULES,
	bulk_classify,
	classify_video,
	get_suggestions,
	manual_classify,
)
from constants import CATEGORIES
from errors import InvalidCategory


@pytest.mark.parametrize('filename, category', [
	('Math Class 9 Lecture.mp4', 'Class 9'),
	('class7_intro.mov', 'Class 7'),
	('Science ch.8 part 2.mp4', 'Class 8'),
	('CHAPTER 10 revision.mkv', 'Class 10'),
	('10th board prep.mp4', 'Class 10'),
	('morning yoga flow.mp4', 'Gym Videos'),
	('Leg WORKOUT.webm', 'Gym Videos'),
])
def test_classify_matches_rules(filename, category):
	result = classify_video(filename)
	assert result['category'] == category
	assert result['autoClassified'] is True
	assert result['confidence'] == 'high'
	assert result['matchedRule']


def test_classify_defaults_to_other():
	result = classify_video('vacation_trip.mp4')
	assert result == {
		'category': 'Other',
		'autoClassified': True,
		'confidence': 'default',
		'matchedRule': None
	}


def test_class_rules_win_over_gym_keywords():
	assert classify_video('Class 9 yoga session.mp4')['category'] == 'Class 9'


def test_rules_are_ordered_by_priority():
	priorities = [priority for _pattern, _category, priority in CLASSIFICATION_RULES]
	assert priorities == sorted(priorities)
	assert all(category in CATEGORIES for _pattern, category, _priority in CLASSIFICATION_RULES)


def test_classify_is_deterministic():
	assert classify_video('Class 8 algebra.mp4') == classify_video('Class 8 algebra.mp4')


def test_manual_classify():
	result = manual_classify('Gym Videos')
	assert result['category'] == 'Gym Videos'
	assert result['autoClassified'] is False
	assert result['manualOverride'] is True
	assert result['classifiedAt']


def test_manual_classify_rejects_unknown_category():
	with pytest.raises(InvalidCategory):
		manual_classify('Class 11')


def test_bulk_classify_preserves_order():
	names = ['gym day.mp4', 'random.mp4', 'class10 physics.mp4']
	results = bulk_classify(names)
	assert [r['filename'] for r in results] == names
	assert [r['category'] for r in results] == ['Gym Videos', 'Other', 'Class 10']


def test_suggestions():
	assert [s['category'] for s in get_suggestions('class 7 cardio')] == ['Class 7', 'Gym Videos']
	assert get_suggestions('holiday') == [{'category': 'Other', 'confidence': 'default'}]
