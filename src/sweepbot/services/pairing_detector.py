"""Detection of collocation pairs: verb + preposition, correlatives and comparisons.

A verb pattern only needs the trigger verb and its preposition somewhere in the
sentence; their positions are not compared.
"""
import logging
import re
from typing import Dict, List, Optional, Tuple

from sweepbot.models.session_models import PairingKind, PairingMatches, PairingPattern

logger = logging.getLogger(__name__)

# Trigger verbs per preposition, in hint priority order
VERB_PREPOSITIONS: Dict[PairingKind, Tuple[str, ...]] = {
    PairingKind.AS: ("view", "regard", "see", "consider", "describe", "define", "perceive", "refer"),
    PairingKind.WITH: ("provide", "supply", "associate", "replace", "equip", "present", "fill", "compare"),
    PairingKind.FROM: ("prevent", "stop", "keep", "distinguish", "differ", "separate", "protect", "prohibit"),
    PairingKind.TO: ("attribute", "owe", "prefer", "add", "apply", "devote", "expose"),
    PairingKind.OF: ("remind", "inform", "convince", "accuse", "deprive", "rob", "cure", "suspect"),
    PairingKind.INTO: ("transform", "turn", "divide", "translate", "put"),
    PairingKind.FOR: ("thank", "blame", "praise", "punish", "forgive"),
}

GENERIC_PREPOSITIONS = ("in", "on", "at", "by", "about", "through", "during", "before", "after")

CORRELATIVES: Tuple[Tuple[Tuple[str, str], str], ...] = (
    (("both", "and"), "both A and B"),
    (("either", "or"), "either A or B"),
    (("neither", "nor"), "neither A nor B"),
    (("not only", "but also"), "not only A but also B"),
    (("not", "but"), "not A but B"),
)

AS_AS_RE = re.compile(r"\bas\b.+\bas\b")

PAIRING_HINTS = {
    PairingKind.AS: "🔗 Pair up! {verb} A as B pattern!\n→ A and \"as B\" belong together!",
    PairingKind.WITH: "🔗 Pair up! {verb} A with B pattern!\n→ give A the B!",
    PairingKind.FROM: "🔗 Pair up! {verb} A from B pattern!\n→ keep A away from B, or tell A from B!",
    PairingKind.TO: "🔗 Pair up! {verb} A to B pattern!\n→ link or attach A to B!",
    PairingKind.OF: "🔗 Pair up! {verb} A of B pattern!\n→ tell A about B, or take B away from A!",
    PairingKind.INTO: "🔗 Pair up! {verb} A into B pattern!\n→ change A into B!",
    PairingKind.FOR: "🔗 Pair up! {verb} A for B pattern!\n→ A, because of B!",
    PairingKind.CORRELATIVE: "🔗 Pair up! \"{word}\" is a correlative conjunction!\n→ Its two parts come as a pair!",
    PairingKind.COMPARISON: "🔗 Pair up! comparative + than, or as + adjective + as!\n→ Comparisons always come in pairs!",
    PairingKind.PREPOSITION: "🔗 Pair up! preposition ({word}) + noun!\n→ A preposition and its noun belong together!",
}


def _has_word(text: str, word: str) -> bool:
    return re.search(rf"\b{re.escape(word)}\b", text) is not None


def _has_verb(text: str, verb: str) -> bool:
    # Word-start match so inflected forms (provided, stops, turning) count too
    return re.search(rf"\b{re.escape(verb)}", text) is not None


def _preposition_of(kind: PairingKind) -> str:
    return kind.value


def detect_pairings(sentence_text: str) -> PairingMatches:
    """Find every pairing pattern in a sentence."""
    s = sentence_text.lower()
    found: List[PairingPattern] = []

    for kind, verbs in VERB_PREPOSITIONS.items():
        if not _has_word(s, _preposition_of(kind)):
            continue
        verb = next((v for v in verbs if _has_verb(s, v)), None)
        if verb is not None:
            found.append(PairingPattern(kind=kind, matched=verb))

    for (first, second), label in CORRELATIVES:
        if _has_word(s, first) and _has_word(s, second):
            found.append(PairingPattern(kind=PairingKind.CORRELATIVE, matched=label))
            break

    if _has_word(s, "than"):
        found.append(PairingPattern(kind=PairingKind.COMPARISON, matched="than"))
    elif AS_AS_RE.search(s):
        found.append(PairingPattern(kind=PairingKind.COMPARISON, matched="as ... as"))

    preposition: Optional[str] = None
    for candidate in GENERIC_PREPOSITIONS:
        if _has_word(s, candidate):
            preposition = candidate
    if preposition is not None:
        found.append(PairingPattern(kind=PairingKind.PREPOSITION, matched=preposition))

    matches = PairingMatches(patterns=tuple(found))
    logger.debug(f"Pairings in {sentence_text!r}: {[(p.kind.value, p.matched) for p in found]}")
    return matches


def pairing_hint(matches: PairingMatches) -> Optional[str]:
    """Hint text for the highest-priority pattern, or None when nothing was detected."""
    pattern = matches.primary()
    if pattern is None:
        return None
    template = PAIRING_HINTS[pattern.kind]
    return template.format(verb=pattern.matched or "verb", word=pattern.matched or "")
