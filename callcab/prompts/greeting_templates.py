"""
Spoken greeting templates.

Each (scenario, language) pair maps to a builder that turns a context dict
into one sentence for the voice agent. Adding a language or a scenario is
adding entries to these tables. Business and agent names are injected from
configuration.
"""

import logging
from typing import Any, Callable, Optional

from callcab.config import BusinessConfig
from callcab.schemas.lookup_schema import GreetingDecision, GreetingScenario, ResumeStep

logger = logging.getLogger(__name__)

GreetingBuilder = Callable[[dict[str, Any]], str]

FALLBACK_LANGUAGE = "english"

# Per-language phrases shared by every scenario. ``pickup_address``,
# ``destination_address`` and ``pickup_time_human`` stand in for missing trip
# fields.
LANGUAGE_PHRASES: dict[str, dict[str, str]] = {
    "english": {
        "intro": "{business}, this is {agent}.",
        "hello": "Hi {name}",
        "hello_anonymous": "Hi there",
        "pickup_address": "your location",
        "destination_address": "your destination",
        "pickup_time_human": "soon",
    },
    "spanish": {
        "intro": "{business}, habla {agent}.",
        "hello": "Hola {name}",
        "hello_anonymous": "Hola",
        "pickup_address": "tu ubicación",
        "destination_address": "tu destino",
        "pickup_time_human": "pronto",
    },
    "portuguese": {
        "intro": "{business}, aqui é {agent}.",
        "hello": "Olá {name}",
        "hello_anonymous": "Olá",
        "pickup_address": "sua localização",
        "destination_address": "seu destino",
        "pickup_time_human": "em breve",
    },
    "german": {
        "intro": "{business}, hier ist {agent}.",
        "hello": "Hallo {name}",
        "hello_anonymous": "Hallo",
        "pickup_address": "Ihrem Standort",
        "destination_address": "Ihrem Ziel",
        "pickup_time_human": "bald",
    },
    "french": {
        "intro": "{business}, c'est {agent}.",
        "hello": "Salut {name}",
        "hello_anonymous": "Bonjour",
        "pickup_address": "ta position",
        "destination_address": "ta destination",
        "pickup_time_human": "bientôt",
    },
}

GREETING_TEXTS: dict[GreetingScenario, dict[str, str]] = {
    GreetingScenario.ACTIVE_TRIP: {
        "english": (
            "{intro} {hello}. I see you have a ride from {pickup_address} to "
            "{destination_address} {pickup_time_human}. Want to modify it or book "
            "something else?"
        ),
        "spanish": (
            "{intro} {hello}. Veo que tienes un viaje de {pickup_address} a "
            "{destination_address} {pickup_time_human}. ¿Quieres modificarlo o "
            "reservar algo más?"
        ),
        "portuguese": (
            "{intro} {hello}. Vejo que você tem uma viagem de {pickup_address} para "
            "{destination_address} {pickup_time_human}. Quer modificar ou reservar "
            "outra coisa?"
        ),
        "german": (
            "{intro} {hello}. Ich sehe, Sie haben eine Fahrt von {pickup_address} "
            "nach {destination_address} {pickup_time_human}. Möchten Sie das ändern "
            "oder etwas anderes buchen?"
        ),
        "french": (
            "{intro} {hello}. Je vois que tu as un trajet de {pickup_address} à "
            "{destination_address} {pickup_time_human}. Tu veux le modifier ou "
            "réserver autre chose?"
        ),
    },
    GreetingScenario.CALLBACK: {
        "english": "{intro} {hello}. Want a pickup from where I dropped you off at {last_dropoff}?",
        "spanish": "{intro} {hello}. ¿Quieres que te recoja donde te dejé en {last_dropoff}?",
        "portuguese": "{intro} {hello}. Quer que eu te pegue onde te deixei em {last_dropoff}?",
        "german": (
            "{intro} {hello}. Soll ich Sie dort abholen, wo ich Sie bei "
            "{last_dropoff} abgesetzt habe?"
        ),
        "french": (
            "{intro} {hello}. Tu veux que je te prenne là où je t'ai déposé "
            "à {last_dropoff}?"
        ),
    },
    GreetingScenario.DROPPED_CALL: {
        "english": "{hello}, it's {agent}. We got disconnected earlier. {resume}",
        "spanish": "{hello}, es {agent}. Se cortó la llamada. {resume}",
        "portuguese": "{hello}, é a {agent}. A ligação caiu. {resume}",
        "german": "{hello}, hier ist {agent}. Wir wurden unterbrochen. {resume}",
        "french": "{hello}, c'est {agent}. On a été coupés. {resume}",
    },
    GreetingScenario.TRIP_DISCUSSION: {
        "english": "{intro} {hello}. Still planning {trip_discussion}?",
        "spanish": "{intro} {hello}. ¿Todavía planeas {trip_discussion}?",
        "portuguese": "{intro} {hello}. Ainda planejando {trip_discussion}?",
        "german": "{intro} {hello}. Planen Sie noch {trip_discussion}?",
        "french": "{intro} {hello}. Tu prévois toujours {trip_discussion}?",
    },
    GreetingScenario.PREFERRED_ADDRESS: {
        "english": "{intro} {hello}. {preferred_pickup_address} again?",
        "spanish": "{intro} {hello}. ¿{preferred_pickup_address} otra vez?",
        "portuguese": "{intro} {hello}. {preferred_pickup_address} de novo?",
        "german": "{intro} {hello}. {preferred_pickup_address} wieder?",
        "french": "{intro} {hello}. {preferred_pickup_address} encore?",
    },
    GreetingScenario.PRIMARY_ADDRESS: {
        "english": "{intro} {hello}. {primary_address} again?",
        "spanish": "{intro} {hello}. ¿{primary_address} otra vez?",
        "portuguese": "{intro} {hello}. {primary_address} de novo?",
        "german": "{intro} {hello}. {primary_address} wieder?",
        "french": "{intro} {hello}. {primary_address} encore?",
    },
    GreetingScenario.KNOWN_CUSTOMER: {
        "english": "{intro} {hello}, where can we pick you up?",
        "spanish": "{intro} {hello}, ¿dónde te recojo?",
        "portuguese": "{intro} {hello}, onde posso te pegar?",
        "german": "{intro} {hello}, wo sollen wir Sie abholen?",
        "french": "{intro} {hello}, où est-ce qu'on te prend?",
    },
    GreetingScenario.NEW_CUSTOMER: {
        "english": "{intro} Where can we pick you up?",
        "spanish": "{intro} ¿Dónde te recojo?",
        "portuguese": "{intro} Onde posso te pegar?",
        "german": "{intro} Wo sollen wir Sie abholen?",
        "french": "{intro} Où est-ce qu'on te prend?",
    },
}

RESUME_TEXTS: dict[ResumeStep, dict[str, str]] = {
    ResumeStep.ASK_DESTINATION: {
        "english": "You were at {pickup_address}. Where are you headed?",
        "spanish": "Estabas en {pickup_address}. ¿A dónde vas?",
        "portuguese": "Você estava em {pickup_address}. Para onde vai?",
        "german": "Sie waren bei {pickup_address}. Wohin soll es gehen?",
        "french": "Tu étais à {pickup_address}. Tu vas où?",
    },
    ResumeStep.ASK_PICKUP: {
        "english": "You were going to {destination_address}. Where should I pick you up?",
        "spanish": "Ibas a {destination_address}. ¿Dónde te recojo?",
        "portuguese": "Você ia para {destination_address}. Onde posso te pegar?",
        "german": "Sie wollten nach {destination_address}. Wo sollen wir Sie abholen?",
        "french": "Tu allais à {destination_address}. Où est-ce qu'on te prend?",
    },
    ResumeStep.CONFIRM_RIDE: {
        "english": (
            "Were you confirming that ride from {pickup_address} to "
            "{destination_address}?"
        ),
        "spanish": (
            "¿Estabas confirmando el viaje de {pickup_address} a "
            "{destination_address}?"
        ),
        "portuguese": (
            "Você estava confirmando a viagem de {pickup_address} para "
            "{destination_address}?"
        ),
        "german": (
            "Wollten Sie die Fahrt von {pickup_address} nach "
            "{destination_address} bestätigen?"
        ),
        "french": "Tu confirmais le trajet de {pickup_address} à {destination_address}?",
    },
    ResumeStep.WHERE_WERE_WE: {
        "english": "Where were we?",
        "spanish": "¿Dónde estábamos?",
        "portuguese": "Onde estávamos?",
        "german": "Wo waren wir stehen geblieben?",
        "french": "On en était où?",
    },
}


def format_template(template: str) -> GreetingBuilder:
    """Wrap a ``str.format`` template as a builder."""

    def build(context: dict[str, Any]) -> str:
        return template.format_map(context)

    return build


class GreetingTemplates:
    """Lookup table from (scenario, language) to a greeting builder.

    Missing (scenario, language) entries fall back to english, so a
    partially translated language still greets the caller.
    """

    def __init__(
        self,
        business_name: str,
        agent_name: str,
        phrases: Optional[dict[str, dict[str, str]]] = None,
    ) -> None:
        self.business_name = business_name
        self.agent_name = agent_name
        self._phrases = dict(phrases or LANGUAGE_PHRASES)
        self._greetings: dict[tuple[GreetingScenario, str], GreetingBuilder] = {}
        self._resumes: dict[tuple[ResumeStep, str], GreetingBuilder] = {}

        for scenario, texts in GREETING_TEXTS.items():
            for language, text in texts.items():
                self.register(scenario, language, format_template(text))
        for step, texts in RESUME_TEXTS.items():
            for language, text in texts.items():
                self.register_resume(step, language, format_template(text))

    @classmethod
    def from_config(cls, config: BusinessConfig) -> "GreetingTemplates":
        return cls(business_name=config.name, agent_name=config.agent_name)

    def register(
        self, scenario: GreetingScenario, language: str, builder: GreetingBuilder
    ) -> None:
        self._greetings[(scenario, language)] = builder

    def register_resume(
        self, step: ResumeStep, language: str, builder: GreetingBuilder
    ) -> None:
        self._resumes[(step, language)] = builder

    def languages(self) -> set[str]:
        """Languages with at least one greeting entry."""
        return {language for _, language in self._greetings}

    def _phrases_for(self, language: str) -> dict[str, str]:
        return self._phrases.get(language) or self._phrases[FALLBACK_LANGUAGE]

    def _context(self, language: str, params: dict[str, Any]) -> dict[str, Any]:
        phrases = self._phrases_for(language)
        context: dict[str, Any] = {
            "business": self.business_name,
            "agent": self.agent_name,
        }
        for key in ("pickup_address", "destination_address", "pickup_time_human"):
            context[key] = phrases[key]
        context.update({key: value for key, value in params.items() if value is not None})

        name = params.get("name")
        context["intro"] = phrases["intro"].format(
            business=self.business_name, agent=self.agent_name
        )
        context["hello"] = (
            phrases["hello"].format(name=name) if name else phrases["hello_anonymous"]
        )
        return context

    def render_resume(
        self, step: ResumeStep, language: str, params: dict[str, Any]
    ) -> str:
        builder = self._resumes.get((step, language)) or self._resumes[
            (step, FALLBACK_LANGUAGE)
        ]
        return builder(self._context(language, params))

    def render(self, decision: GreetingDecision) -> str:
        """Render the spoken greeting for a decision."""
        language = decision.language
        builder = self._greetings.get((decision.scenario, language))
        if builder is None:
            logger.warning(
                "No %s template for %s; using %s",
                language, decision.scenario.value, FALLBACK_LANGUAGE,
            )
            language = FALLBACK_LANGUAGE
            builder = self._greetings[(decision.scenario, FALLBACK_LANGUAGE)]

        context = self._context(language, decision.params)
        if decision.scenario == GreetingScenario.DROPPED_CALL:
            step = ResumeStep(decision.params.get("resume_step", ResumeStep.WHERE_WERE_WE))
            context["resume"] = self.render_resume(step, language, decision.params)
        return builder(context)
