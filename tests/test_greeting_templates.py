"""Tests for rendering greeting decisions into spoken text."""

from callcab.prompts.greeting_templates import (
    GREETING_TEXTS,
    LANGUAGE_PHRASES,
    RESUME_TEXTS,
    GreetingTemplates,
)
from callcab.schemas.lookup_schema import GreetingDecision, GreetingScenario, ResumeStep


def _decision(scenario: GreetingScenario, language: str = "english", **params) -> GreetingDecision:
    return GreetingDecision(scenario=scenario, language=language, params=params)


class TestTableCoverage:
    def test_every_scenario_has_every_language(self):
        for scenario in GreetingScenario:
            assert set(GREETING_TEXTS[scenario]) == set(LANGUAGE_PHRASES)

    def test_every_resume_step_has_every_language(self):
        for step in ResumeStep:
            assert set(RESUME_TEXTS[step]) == set(LANGUAGE_PHRASES)

    def test_languages(self, templates):
        assert templates.languages() == {"english", "spanish", "portuguese", "german", "french"}


class TestRender:
    def test_known_customer_english(self, templates):
        text = templates.render(_decision(GreetingScenario.KNOWN_CUSTOMER, name="Dana"))
        assert text == "High Mountain Taxi, this is Claire. Hi Dana, where can we pick you up?"

    def test_known_customer_spanish(self, templates):
        text = templates.render(
            _decision(GreetingScenario.KNOWN_CUSTOMER, "spanish", name="Maria")
        )
        assert text == "High Mountain Taxi, habla Claire. Hola Maria, ¿dónde te recojo?"

    def test_new_customer(self, templates):
        text = templates.render(_decision(GreetingScenario.NEW_CUSTOMER, name=None))
        assert text == "High Mountain Taxi, this is Claire. Where can we pick you up?"

    def test_missing_name_uses_anonymous_hello(self, templates):
        text = templates.render(
            _decision(GreetingScenario.PRIMARY_ADDRESS, name=None, primary_address="456 Oak Ave")
        )
        assert text == "High Mountain Taxi, this is Claire. Hi there. 456 Oak Ave again?"

    def test_active_trip(self, templates):
        text = templates.render(_decision(
            GreetingScenario.ACTIVE_TRIP,
            name="Priya",
            pickup_address="St. Regis Aspen",
            destination_address="Aspen Airport",
            pickup_time_human="today at 3:30 PM (Mon, Oct 19)",
        ))
        assert "ride from St. Regis Aspen to Aspen Airport today at 3:30 PM" in text

    def test_active_trip_missing_fields_get_placeholders(self, templates):
        text = templates.render(_decision(
            GreetingScenario.ACTIVE_TRIP, name="Priya",
            pickup_address=None, destination_address=None, pickup_time_human=None,
        ))
        assert "from your location to your destination soon." in text

    def test_callback_german(self, templates):
        text = templates.render(
            _decision(GreetingScenario.CALLBACK, "german", name="Jonas", last_dropoff="Hotel Jerome")
        )
        assert text.startswith("High Mountain Taxi, hier ist Claire. Hallo Jonas.")
        assert "Hotel Jerome" in text

    def test_dropped_call_asks_for_destination(self, templates):
        text = templates.render(_decision(
            GreetingScenario.DROPPED_CALL,
            name="Tom", resume_step="ask_destination", pickup_address="Airport",
        ))
        assert text == (
            "Hi Tom, it's Claire. We got disconnected earlier. "
            "You were at Airport. Where are you headed?"
        )

    def test_dropped_call_french_confirm(self, templates):
        text = templates.render(_decision(
            GreetingScenario.DROPPED_CALL, "french",
            name=None, resume_step="confirm_ride",
            pickup_address="Airport", destination_address="Snowmass",
        ))
        assert text.startswith("Bonjour, c'est Claire.")
        assert "de Airport à Snowmass" in text

    def test_unknown_language_falls_back_to_english(self, templates):
        text = templates.render(_decision(GreetingScenario.KNOWN_CUSTOMER, "italian", name="Luca"))
        assert text == "High Mountain Taxi, this is Claire. Hi Luca, where can we pick you up?"

    def test_business_names_are_injected(self):
        templates = GreetingTemplates(business_name="Valley Cabs", agent_name="Rosa")
        text = templates.render(_decision(GreetingScenario.NEW_CUSTOMER))
        assert text == "Valley Cabs, this is Rosa. Where can we pick you up?"


class TestRegister:
    def test_registered_builder_overrides_entry(self, templates):
        templates.register(
            GreetingScenario.KNOWN_CUSTOMER, "english", lambda ctx: f"Hey {ctx['name']}!"
        )
        assert templates.render(_decision(GreetingScenario.KNOWN_CUSTOMER, name="Dana")) == "Hey Dana!"

    def test_partially_translated_language(self, templates):
        templates.register(
            GreetingScenario.NEW_CUSTOMER, "italian", lambda ctx: "Pronto, dove la veniamo a prendere?"
        )
        assert "italian" in templates.languages()
        assert templates.render(_decision(GreetingScenario.NEW_CUSTOMER, "italian")) == (
            "Pronto, dove la veniamo a prendere?"
        )
        known = templates.render(_decision(GreetingScenario.KNOWN_CUSTOMER, "italian", name="Luca"))
        assert known.startswith("High Mountain Taxi, this is Claire.")
