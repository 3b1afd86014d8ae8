from __future__ import annotations
import random
import re
from typing import NamedTuple, Optional

CRISIS = "crisis"
GENERIC = "generic"

CRISIS_KEYWORDS = [
    "suicid", "self harm", "self-harm", "hurt myself", "end it", "kill myself",
]

CRISIS_RESPONSE = (
    "If you're thinking about harming yourself or others, your safety matters most. "
    "Please contact local emergency services or a trusted person right now. "
    "If available, consider your country's crisis hotline."
)

# checked in order, first hit wins
INTENT_KEYWORDS: list[tuple[str, list[str]]] = [
    ("panic", ["panic", "heart racing"]),
    ("anxiety", ["anxiety", "anxious", "worry", "worried"]),
    ("low_mood", ["depress", "sad", "down", "empty"]),
    ("stress", ["stress", "overwhelm", "burnout"]),
    ("sleep", ["sleep", "insomnia", "can't sleep", "cant sleep"]),
    ("anger", ["angry", "anger", "rage"]),
    ("relationship", ["partner", "relationship", "breakup", "friend", "family"]),
    ("work_study", ["work", "office", "deadline", "study", "exam", "college", "school"]),
    ("physical", ["fever", "headache", "pain", "sick", "ill", "nausea"]),
    ("greeting", ["hi", "hello", "hey"]),
]

RESPONSES: dict[str, list[str]] = {
    "greeting": [
        "Hi, I'm here with you. How are you feeling right now?",
        "Hello. Thanks for reaching out. What's on your mind?",
        "Hey, I'm listening. Want to tell me a bit more about it?",
    ],
    "panic": [
        "Panic can feel scary but it will pass. Look around and name 5 things you can see. I'm here with you.",
        "Place a hand on your chest and feel the rise and fall. Let your exhale be longer than your inhale.",
    ],
    "anxiety": [
        "It sounds like anxiety is showing up. Try taking 5 deep breaths: inhale for 4 counts, hold for 4, "
        "exhale for 6. What usually helps you feel a little safer?",
        "Those anxious waves can feel intense. Try a slow exhale (6 counts). What triggered it today?",
    ],
    "low_mood": [
        "I'm sorry it's heavy. Small steps help, maybe a glass of water or a short stretch. "
        "What would feel kind to yourself right now?",
        "Feeling low can be exhausting. You matter. Would writing down one worry help externalize it?",
    ],
    "stress": [
        "Stress piles up fast. Let's prioritize: what is one small task you can do next?",
        "Your nervous system might need a micro-break. 5 slow breaths, shoulders down, unclench jaw.",
    ],
    "sleep": [
        "Sleep troubles are tough. Try dimming lights, avoiding screens 30 minutes before bed, "
        "and a calm breath pattern (4-4-6).",
        "If your mind is racing, a quick brain dump on paper can help before bed.",
    ],
    "anger": [
        "Anger is a valid signal. If safe, step back, cool water on wrists, and name what boundary was crossed.",
        "Let's channel it safely: paced breathing and a short walk can release tension.",
    ],
    "relationship": [
        "Relationships are complex. Would you like to try an \"I feel... when... I need...\" statement?",
        "Can we clarify the need underneath the conflict? What are you hoping to feel more of?",
    ],
    "work_study": [
        "Work and study stress is real. Let's chunk it: pick a 15-minute focus block, then a 2-minute break.",
        "Try a 1-3 priority list for today: one must-do, two nice-to-do.",
    ],
    "physical": [
        "Feeling unwell can make everything harder. Hydrate, rest your eyes, and notice any triggers. "
        "If symptoms persist or worsen, consider medical advice. What's the biggest worry behind it?",
        "Your body is asking for care. Gentle rest, water, and light food may help. If pain or fever continues, "
        "a healthcare check is wise. How are you feeling emotionally about it?",
    ],
    GENERIC: [
        "I hear you. Try taking 5 deep breaths: inhale for 4 counts, hold for 4, exhale for 6. "
        "If it helps, share a bit more about what happened today so we can unpack it together.",
        "Thanks for opening up. Let's take one small step: what is one thing within your control right now?",
        "You don't have to carry this alone. Would naming your top concern in one sentence help us focus?",
        "Let's slow it down together. Long exhale, relaxed shoulders. What support would feel most helpful right now?",
    ],
}

# intent -> mood label for the admin chatbot dashboard
INTENT_MOODS = {
    CRISIS: "crisis",
    "panic": "anxious",
    "anxiety": "anxious",
    "low_mood": "sad",
    "stress": "stressed",
    "work_study": "stressed",
    "sleep": "tired",
    "anger": "angry",
    "relationship": "lonely",
    "physical": "unwell",
    "greeting": "neutral",
    GENERIC: "neutral",
}


def _pattern(keywords: list[str], whole_word: bool = False) -> re.Pattern:
    # word-start match: "depress" hits "depressed", "ill" does not hit "will"
    tail = r"\b" if whole_word else ""
    return re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")" + tail)


# "hi" must not fire on "his" or "history"
WHOLE_WORD_INTENTS = {"greeting"}

_CRISIS_RE = _pattern(CRISIS_KEYWORDS)
_INTENT_RES = [(intent, _pattern(words, intent in WHOLE_WORD_INTENTS)) for intent, words in INTENT_KEYWORDS]


class ChatReply(NamedTuple):
    intent: str
    text: str


def classify(text: str) -> str:
    s = (text or "").lower()
    if _CRISIS_RE.search(s):
        return CRISIS
    for intent, rx in _INTENT_RES:
        if rx.search(s):
            return intent
    return GENERIC


def generate_response(text: str, rng: Optional[random.Random] = None) -> ChatReply:
    intent = classify(text)
    if intent == CRISIS:
        return ChatReply(CRISIS, CRISIS_RESPONSE)
    choices = RESPONSES[intent]
    return ChatReply(intent, (rng or random).choice(choices))


def mood_for(intent: Optional[str]) -> str:
    return INTENT_MOODS.get(intent or GENERIC, "neutral")
