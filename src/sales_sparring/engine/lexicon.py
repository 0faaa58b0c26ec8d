"""
Keyword patterns used by the emotional model and the micro-scorer.

Matching is case-insensitive and purely lexical.
"""
import re


def _words(*phrases: str) -> re.Pattern:
    return re.compile(r"\b(?:" + "|".join(phrases) + r")\b", re.IGNORECASE)


# "budget" is deliberately absent: asking about budget is discovery, not pricing.
PRICE = re.compile(
    r"\b(?:price[sd]?|pricing|cost[s]?|costly|expensive|cheap(?:er)?|fees?|per (?:seat|month|user|year))\b"
    r"|[$€£]",
    re.IGNORECASE,
)

ROI = _words(r"roi", r"return on investment", r"payback")

VALUE = _words(
    r"sav(?:e|es|ed|ing|ings)",
    r"roi",
    r"return on investment",
    r"payback",
    r"pays? for itself",
    r"revenue",
    r"profit(?:s|able)?",
    r"margin[s]?",
    r"efficien(?:t|cy)",
    r"productiv(?:e|ity)",
    r"value",
)

CLOSING = _words(
    r"next steps?",
    r"book(?:ed|ing)?",
    r"trial",
    r"move forward",
    r"schedule",
    r"calendar",
    r"demo",
    r"pilot",
    r"get started",
    r"sign up",
)

EMPATHY = _words(
    r"i hear you",
    r"i understand",
    r"understandable",
    r"makes sense",
    r"fair (?:point|enough|concern)",
    r"that'?s fair",
    r"i get (?:it|that)",
    r"totally get",
    r"sounds like",
    r"i appreciate",
)

GRATITUDE = _words(
    r"thanks?",
    r"thank you",
    r"appreciate(?:d)?",
    r"i hear you",
    r"i understand",
    r"great question",
    r"good point",
    r"makes sense",
)

STALLING = _words(
    r"think about it",
    r"circle back",
    r"get back to you",
    r"touch base",
    r"follow up later",
    r"no rush",
)

HIGH_PRESSURE = _words(
    r"sign today",
    r"last chance",
    r"act now",
    r"today only",
    r"limited time",
    r"before (?:it'?s|they'?re) gone",
    r"right now or",
)

SALES_WORDS = _words(
    r"discounts?",
    r"deals?",
    r"special offer",
    r"best price",
    r"promo(?:tion)?",
)

BUYER_PRICE_OBJECTION = _words(
    r"expensive",
    r"too much",
    r"price[ys]?",
    r"pricing",
    r"cost[s]?",
    r"budget",
    r"cheaper",
    r"afford",
    r"out of (?:our|my) range",
)

BUYER_STALL = _words(
    r"think about it",
    r"circle back",
    r"get back to you",
    r"not sure",
    r"not now",
    r"next quarter",
    r"later",
    r"check with",
    r"talk to my",
    r"send me (?:some|more)? ?info(?:rmation)?",
    r"committee",
)

DIGIT = re.compile(r"\d")
