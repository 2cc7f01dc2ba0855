"""Tests for preference aggregation over call records."""

from callcab.context.preferences import (
    aggregate_preferences,
    collect_jokes,
    detect_pickup_pattern,
    merge_conversation_topics,
    merge_personal_details,
    resolve_preferred_language,
    resolve_preferred_name,
    resolve_preferred_pickup_address,
    summarize_behavior,
)
from callcab.schemas.memory_schema import PickupBasis
from tests.conftest import make_record


class TestPreferredName:
    def test_newest_name_wins(self):
        window = [make_record(1, preferred_name="Dana"), make_record(5, preferred_name="Danielle")]
        assert resolve_preferred_name(window) == "Dana"

    def test_skips_records_without_a_name(self):
        window = [make_record(1), make_record(5, preferred_name="Dana")]
        assert resolve_preferred_name(window) == "Dana"

    def test_blank_name_is_ignored(self):
        window = [make_record(1, preferred_name="   "), make_record(5, preferred_name="Dana")]
        assert resolve_preferred_name(window) == "Dana"

    def test_no_name(self):
        assert resolve_preferred_name([make_record(1)]) is None


class TestPreferredLanguage:
    def test_newer_english_clears_older_spanish(self):
        records = [
            make_record(3, preferred_language="spanish"),
            make_record(1, preferred_language="english"),
        ]
        prefs = aggregate_preferences(records)
        assert prefs.preferred_language == "english"

    def test_newer_spanish_overrides_older_english(self):
        window = [
            make_record(1, preferred_language="Spanish"),
            make_record(3, preferred_language="english"),
        ]
        assert resolve_preferred_language(window) == ("spanish", True)

    def test_unstated_language_defaults_to_english(self):
        assert resolve_preferred_language([make_record(1)]) == ("english", False)


class TestPickupAddress:
    def test_repeated_pickup_becomes_pattern(self):
        records = [
            make_record(1, last_pickup="123 Main St"),
            make_record(2, last_pickup="Aspen Airport"),
            make_record(3, last_pickup="123 Main St"),
        ]
        prefs = aggregate_preferences(records)
        assert prefs.preferred_pickup_address == "123 Main St"
        assert prefs.pickup_basis == PickupBasis.PATTERN

    def test_single_use_is_not_a_pattern(self):
        records = [
            make_record(1, last_pickup="123 Main St"),
            make_record(2, last_pickup="Aspen Airport"),
            make_record(3, last_pickup="Hotel Jerome"),
        ]
        prefs = aggregate_preferences(records)
        assert prefs.preferred_pickup_address is None
        assert prefs.pickup_basis is None

    def test_explicit_preference_beats_pattern(self):
        records = [
            make_record(1, last_pickup="123 Main St"),
            make_record(2, last_pickup="123 Main St", preferred_pickup_address="The Little Nell"),
        ]
        address, basis = resolve_preferred_pickup_address(records, records)
        assert address == "The Little Nell"
        assert basis == PickupBasis.EXPLICIT

    def test_pattern_matching_ignores_case_and_spacing(self):
        records = [
            make_record(1, last_pickup="123  main st"),
            make_record(2, last_pickup="123 Main St"),
        ]
        assert detect_pickup_pattern(records) == "123  main st"

    def test_tie_goes_to_most_recent_address(self):
        records = [
            make_record(1, last_pickup="Hotel Jerome"),
            make_record(2, last_pickup="123 Main St"),
            make_record(3, last_pickup="123 Main St"),
            make_record(4, last_pickup="Hotel Jerome"),
        ]
        assert detect_pickup_pattern(records) == "Hotel Jerome"

    def test_higher_count_beats_recency(self):
        records = [
            make_record(1, last_pickup="Hotel Jerome"),
            make_record(2, last_pickup="Hotel Jerome"),
            make_record(3, last_pickup="123 Main St"),
            make_record(4, last_pickup="123 Main St"),
            make_record(5, last_pickup="123 Main St"),
        ]
        assert detect_pickup_pattern(records) == "123 Main St"

    def test_pattern_uses_history_beyond_window(self):
        records = [make_record(h) for h in range(1, 6)] + [
            make_record(10, last_pickup="Buttermilk Base"),
            make_record(11, last_pickup="Buttermilk Base"),
        ]
        prefs = aggregate_preferences(records, window_size=5)
        assert prefs.preferred_pickup_address == "Buttermilk Base"

    def test_threshold_is_configurable(self):
        records = [make_record(h, last_pickup="123 Main St") for h in (1, 2)]
        assert detect_pickup_pattern(records, min_uses=3) is None


class TestMergedContext:
    def test_topics_are_deduplicated_newest_first(self):
        window = [
            make_record(1, conversation_topics=["skiing", "Weather"]),
            make_record(2, conversation_topics=["weather", "dogs"]),
        ]
        assert merge_conversation_topics(window) == ["skiing", "Weather", "dogs"]

    def test_jokes_are_capped(self):
        window = [
            make_record(1, jokes_shared=["a", "b"]),
            make_record(2, jokes_shared=["c", "d"]),
        ]
        assert collect_jokes(window) == ["a", "b", "c"]

    def test_plain_string_joke_is_accepted(self):
        assert collect_jokes([make_record(1, jokes_shared="ski lift pun")]) == ["ski lift pun"]

    def test_newer_personal_details_win(self):
        window = [
            make_record(1, personal_details={"dog": "Max"}),
            make_record(2, personal_details={"dog": "Rex", "kids": 2}),
        ]
        assert merge_personal_details(window) == {"dog": "Max", "kids": 2}

    def test_string_personal_details_become_notes(self):
        details = merge_personal_details([make_record(1, personal_details="works at the hospital")])
        assert details == {"notes": "works at the hospital"}

    def test_behavior_summary(self):
        window = [
            make_record(1, behavior="friendly"),
            make_record(2, behavior="rude"),
            make_record(3, behavior="grateful"),
            make_record(4, behavior="sleepy"),
        ]
        summary = summarize_behavior(window)
        assert (summary.positive, summary.negative, summary.total) == (2, 1, 4)


class TestAggregatePreferences:
    def test_window_limits_name_lookup(self):
        records = [make_record(h) for h in range(1, 6)] + [
            make_record(6, preferred_name="Dana"),
        ]
        assert aggregate_preferences(records, window_size=5).preferred_name is None
        assert aggregate_preferences(records, window_size=6).preferred_name == "Dana"

    def test_input_order_does_not_matter(self):
        older = make_record(5, preferred_name="Old", trip_discussion="ski week in March")
        newer = make_record(1, preferred_name="New")
        prefs = aggregate_preferences([older, newer])
        assert prefs.preferred_name == "New"
        assert prefs.trip_discussion == "ski week in March"
        assert prefs.records_considered == 2

    def test_no_records(self):
        prefs = aggregate_preferences([])
        assert prefs.preferred_name is None
        assert prefs.preferred_language == "english"
        assert prefs.records_considered == 0
