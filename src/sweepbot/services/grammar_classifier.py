"""Lexical detection of grammatical constructs, each with three escalating hints.

Rules are evaluated top to bottom and each rule contributes at most one match,
so the first match in the result is always the highest-priority construct.
"""
import logging
import re
from typing import Callable, List, Optional, Sequence

from sweepbot.models.session_models import GrammarKind, GrammarStructureMatch

logger = logging.getLogger(__name__)

Rule = Callable[[str, List[str]], Optional[GrammarStructureMatch]]

TO_INFINITIVE_VERBS = (
    "be|have|do|make|get|take|give|find|keep|let|say|go|come|see|know|want|need|use|try|ask|"
    "work|call|help|feel|seem|become|begin|start|learn|play|run|live|believe|bring|happen|write|"
    "provide|sit|stand|lose|pay|meet|include|continue|set|move|lead|understand|turn|leave|show|"
    "hear|create|spend|grow|open|walk|win|hold|teach|offer|remember|love|consider|appear|buy|wait|"
    "serve|die|send|expect|build|stay|fall|cut|reach|kill|remain|suggest|raise|pass|sell|require|"
    "report|decide|pull|develop|produce|eat|read|carry|follow|allow|think|look|put|tell"
)
TO_INFINITIVE_RE = re.compile(rf"\bto\s+({TO_INFINITIVE_VERBS})\b")
TO_INFINITIVE_SUBJECT_RE = re.compile(r"^to\s+\w+")
TO_INFINITIVE_OBJECT_RE = re.compile(
    r"\b(want|need|decide|plan|hope|wish|expect|learn|agree|refuse|promise|offer|fail|manage|"
    r"afford|choose|pretend|seem|appear|tend)\b.*\bto\b"
)
TO_INFINITIVE_PURPOSE_RE = re.compile(r"\b(in order|so as)\s+to\b")
TO_INFINITIVE_TRAILING_RE = re.compile(r",?\s*to\s+\w+")

NOT_GERUNDS = {
    "thing", "something", "nothing", "anything", "everything", "during", "morning",
    "evening", "string", "spring", "bring", "king", "ring", "sing",
}
GERUND_OBJECT_RE = re.compile(
    r"\b(enjoy|mind|finish|avoid|consider|suggest|practice|quit|deny|imagine|keep|risk|admit|"
    r"delay|miss|postpone|resist|give up|put off)\b"
)

PASSIVE_PARTICIPLES = (
    "regarded|considered|made|called|known|used|found|given|taken|seen|done|said|told|shown|left|"
    "written|kept|led|set|built|sent|expected|required|allowed|believed|caused|created|designed|"
    "developed|discovered|discussed|divided|driven|established|estimated|forced|formed|identified|"
    "included|introduced|involved|limited|linked|located|moved|needed|observed|obtained|offered|"
    "organized|placed|produced|provided|published|raised|received|recognized|related|released|"
    "remained|reported|represented|resulted|studied|suggested|supported|thought|turned|understood|"
    "viewed|based|born|broken|brought|bought|caught|chosen|cut|drawn|drunk|eaten|fallen|felt|"
    "fought|forgotten|frozen|grown|heard|held|hidden|hit|hurt|lost|met|paid|put|read|run|sold|shot|"
    "shut|sat|slept|spoken|spent|stood|struck|taught|thrown|torn|woken|worn|won|wound"
)
PASSIVE_RE = re.compile(
    r"\b(is|are|was|were|been|being|be)\s+(not\s+)?(also\s+)?"
    r"(easily\s+|often\s+|usually\s+|always\s+|never\s+)?"
    rf"({PASSIVE_PARTICIPLES})\b"
)

RELATIVE_RE = re.compile(r"\b(who|whom|whose|which|that)\b")
THAT_RE = re.compile(r"\bthat\b")

POSTPOSITIVE_ED_RE = re.compile(r"\b\w+ed\s+(by|in|at|on|from|with|for)\b")
POSTPOSITIVE_ING_RE = re.compile(r"\b\w+ing\s+(in|at|on|for|with|to)\b")

IT_CLEFT_RE = re.compile(r"^it\s+(is|was|seems|appears|becomes)\b")
IT_CLEFT_TAIL_RE = re.compile(r"\bto\s+\w+|\bthat\s+")

CAUSATIVE_RE = re.compile(r"\b(make|let|have|help)\b")
PERCEPTION_RE = re.compile(r"\b(see|watch|hear|feel|notice|observe)\b")

ADVERB_CONJUNCTION_RE = re.compile(
    r"\b(when|while|before|after|since|until|because|although|though|even though|if|unless|"
    r"as soon as|so that|in order that|wherever|whenever|as)\b"
)

PERFECT_PARTICIPLES = (
    "been|done|made|gone|come|taken|seen|known|given|found|said|told|got|left|put|read|run|set|"
    "shown|thought|tried|used|worked|written|become|begun|broken|brought|built|bought|caught|"
    "chosen|drawn|drunk|eaten|fallen|felt|flown|forgotten|frozen|grown|heard|held|hidden|hit|hurt|"
    "kept|led|lost|met|paid|sat|sold|sent|shot|slept|spoken|spent|stood|struck|taught|thrown|"
    "understood|woken|worn|won|wound"
)
PERFECT_RE = re.compile(
    r"\b(have|has|had)\s+(not\s+)?(already\s+|just\s+|ever\s+|never\s+|recently\s+)?"
    rf"({PERFECT_PARTICIPLES})\b"
)

COMPARATIVE_RE = re.compile(r"\b(more|less)\s+\w+\s+than\b|\b\w+(er|ier)\s+than\b")
SUPERLATIVE_RE = re.compile(r"\bthe\s+(most|least)\b|\bthe\s+\w+(est|iest)\b")
AS_AS_RE = re.compile(r"\bas\s+\w+\s+as\b")

THAT_CLAUSE_RE = re.compile(
    r"\b(think|believe|know|hope|realize|suppose|imagine|notice|discover|admit|claim|agree|"
    r"insist|suggest|demand|recommend)\s+(that\s+)?"
)

PARTICIPIAL_START_RE = re.compile(r"^(not\s+)?\w+ing\b")


def _match(kind: GrammarKind, name: str, *hints: str) -> GrammarStructureMatch:
    return GrammarStructureMatch(kind=kind, display_name=name, hints=tuple(hints))


def detect_to_infinitive(s: str, words: List[str]) -> Optional[GrammarStructureMatch]:
    if not TO_INFINITIVE_RE.search(s):
        return None
    if TO_INFINITIVE_SUBJECT_RE.search(s):
        return _match(
            GrammarKind.TO_INFINITIVE_SUBJECT,
            "To-infinitive (as subject)",
            "💡 A to-infinitive works as the subject of this sentence!",
            "💡 To + base verb at the very start acts like a subject.\n→ Read it as \"to do ... is ...\".",
            "💡 Structure: [To + base verb ...] + verb + rest\n→ The to-infinitive chunk comes first, then the verb!",
        )
    if TO_INFINITIVE_OBJECT_RE.search(s):
        return _match(
            GrammarKind.TO_INFINITIVE_OBJECT,
            "To-infinitive (as object)",
            "💡 A to-infinitive follows the verb as its object!",
            "💡 Verb + to + base verb pattern!\n→ \"want to / decide to / hope to do something\"",
            "💡 Structure: subject + verb + [to + base verb ...]\n→ want to ~, decide to ~, hope to ~",
        )
    if TO_INFINITIVE_PURPOSE_RE.search(s) or TO_INFINITIVE_TRAILING_RE.search(s):
        return _match(
            GrammarKind.TO_INFINITIVE_ADVERB,
            "To-infinitive (purpose)",
            "💡 A to-infinitive here means \"in order to\", it shows a purpose!",
            "💡 to + base verb = \"in order to do\"\n→ It modifies the verb like an adverb.",
            "💡 Structure: main clause + [to + base verb ...]\n→ The to-infinitive comes after and tells why!",
        )
    return _match(
        GrammarKind.TO_INFINITIVE,
        "To-infinitive",
        "💡 This sentence has a to-infinitive!",
        "💡 to + base verb is one chunk!\n→ The base verb follows right after to.",
        "💡 Find the to-infinitive and keep it together!\n→ [to + base verb + ...]",
    )


def detect_gerund(s: str, words: List[str]) -> Optional[GrammarStructureMatch]:
    ing_words = [w for w in words if w.endswith("ing") and len(w) > 4 and w not in NOT_GERUNDS]
    if not ing_words:
        return None
    if words and words[0].endswith("ing") and len(words[0]) > 4:
        return _match(
            GrammarKind.GERUND_SUBJECT,
            "Gerund subject (V-ing)",
            "💡 A gerund (V-ing) is the subject of this sentence!",
            "💡 Starting with V-ing means \"doing something ...\".\n→ The gerund chunk sits in the subject slot.",
            "💡 Structure: [V-ing + ...] + verb + rest\n→ Place the V-ing chunk first!",
        )
    if GERUND_OBJECT_RE.search(s):
        return _match(
            GrammarKind.GERUND_OBJECT,
            "Gerund object",
            "💡 This verb takes a gerund (V-ing) as its object!",
            "💡 After enjoy / mind / finish / avoid\n→ no to-infinitive, only V-ing!",
            "💡 Structure: subject + verb + [V-ing + ...]\n→ enjoy doing, finish reading!",
        )
    return _match(
        GrammarKind.PRESENT_PARTICIPLE,
        "Present participle / gerund",
        "💡 There is a V-ing form in this sentence! Watch where it goes.",
        "💡 V-ing can modify a noun (before or after it) or show progress after be.",
        "💡 Jobs of V-ing: (1) progressive be + V-ing (2) modifier next to a noun (3) subject/object (gerund)",
    )


def detect_passive(s: str, words: List[str]) -> Optional[GrammarStructureMatch]:
    if not PASSIVE_RE.search(s):
        return None
    return _match(
        GrammarKind.PASSIVE,
        "Passive voice (be + p.p.)",
        "💡 This sentence is in the passive voice!",
        "💡 be + past participle = \"is done / was made\"\n→ The subject receives the action!",
        "💡 Structure: subject + be + p.p. + (by ...)\n→ is/are/was/were, then the past participle!",
    )


def detect_relative_clause(s: str, words: List[str]) -> Optional[GrammarStructureMatch]:
    match = RELATIVE_RE.search(s)
    if not match:
        return None
    last_word_before_comma = s.split(",")[0].strip().split(" ")[-1]
    if THAT_RE.search(last_word_before_comma):
        return None
    rel = match.group(1)
    return _match(
        GrammarKind.RELATIVE_CLAUSE,
        "Relative clause",
        f"💡 The relative pronoun \"{rel}\" describes the noun before it!",
        f"💡 noun + {rel} + clause = relative clause!\n→ Everything from \"{rel}\" describes that noun.\n"
        "→ Keep the relative clause together as one chunk!",
        f"💡 Structure: [noun] + [{rel} + subject + verb ...] + main verb\n→ The relative clause sits right after its noun!",
    )


def detect_postpositive_participle(s: str, words: List[str]) -> Optional[GrammarStructureMatch]:
    if not (POSTPOSITIVE_ED_RE.search(s) or POSTPOSITIVE_ING_RE.search(s)):
        return None
    return _match(
        GrammarKind.POSTPOSITIVE_PARTICIPLE,
        "Participle after a noun",
        "💡 A participle phrase modifies a noun from behind!",
        "💡 noun + V-ing/p.p. + ... = post-modifier!\n→ Read it as \"the (noun) doing / done ...\".\n"
        "→ The participle phrase describes the noun before it!",
        "💡 Structure: [noun] + [V-ing/p.p. + ...]\n→ The participle phrase sticks right after the noun!",
    )


def detect_it_cleft(s: str, words: List[str]) -> Optional[GrammarStructureMatch]:
    if not (IT_CLEFT_RE.search(s) and IT_CLEFT_TAIL_RE.search(s)):
        return None
    return _match(
        GrammarKind.IT_CLEFT,
        "Dummy subject It",
        "💡 This sentence uses \"It\" as a dummy subject!",
        "💡 It is only a placeholder! The real subject is the to~/that~ part.\n→ The real content comes later!",
        "💡 Structure: It + is/was + adjective + to~/that~\n→ It is important to study hard.",
    )


def detect_causative(s: str, words: List[str]) -> Optional[GrammarStructureMatch]:
    match = CAUSATIVE_RE.search(s)
    if not match:
        return None
    verb = match.group(1)
    return _match(
        GrammarKind.CAUSATIVE,
        f"Causative verb ({verb})",
        f"💡 This sentence has the causative verb \"{verb}\"!",
        f"💡 {verb} + object + base verb/p.p. pattern!\n→ \"{verb} A do B\" = get A to do B\n"
        "→ A base verb or past participle follows the object!",
        f"💡 Structure: subject + {verb} + object + base verb/p.p.\n→ After a causative: object, then its complement!",
    )


def detect_perception_verb(s: str, words: List[str]) -> Optional[GrammarStructureMatch]:
    match = PERCEPTION_RE.search(s)
    if not match:
        return None
    verb = match.group(1)
    return _match(
        GrammarKind.PERCEPTION_VERB,
        f"Perception verb ({verb})",
        f"💡 This sentence has the perception verb \"{verb}\"!",
        f"💡 {verb} + object + base verb/V-ing pattern!\n→ see / hear / feel A doing B",
        f"💡 Structure: subject + {verb} + object + base verb/V-ing",
    )


def detect_adverb_clause(s: str, words: List[str]) -> Optional[GrammarStructureMatch]:
    match = ADVERB_CONJUNCTION_RE.search(s)
    if not match:
        return None
    conj = match.group(1)
    clause_first = s.find(conj) < len(s) / 3
    if clause_first:
        order_hint = "An adverb clause at the front ends at the comma (,), the main clause follows!"
        template = f"[{conj} + S + V ...], + main clause"
    else:
        order_hint = "The adverb clause follows the main clause."
        template = f"main clause + [{conj} + S + V ...]"
    return _match(
        GrammarKind.ADVERB_CLAUSE,
        f"Adverb clause with \"{conj}\"",
        f"💡 The conjunction \"{conj}\" starts an adverb clause!",
        f"💡 {conj} + subject + verb = one adverb-clause chunk!\n→ {order_hint}",
        f"💡 Structure: {template}\n→ Keep the conjunction clause together!",
    )


def detect_perfect_tense(s: str, words: List[str]) -> Optional[GrammarStructureMatch]:
    if not PERFECT_RE.search(s):
        return None
    return _match(
        GrammarKind.PERFECT_TENSE,
        "Perfect tense (have + p.p.)",
        "💡 This sentence is in a perfect tense!",
        "💡 have/has/had + past participle = perfect tense!\n→ Experience, completion, continuation or result.",
        "💡 Structure: subject + have/has + p.p. + rest\n→ have and the participle belong together, adverbs may sit between!",
    )


def detect_comparison(s: str, words: List[str]) -> Optional[GrammarStructureMatch]:
    if COMPARATIVE_RE.search(s):
        return _match(
            GrammarKind.COMPARATIVE,
            "Comparative (more ~ / ~er + than)",
            "💡 This sentence has a comparative!",
            "💡 more + adjective + than, or ~er + than!\n→ \"more ... than\".",
            "💡 Structure: A + be + more ~/~er + than + B\n→ The comparative and than are a pair!",
        )
    if SUPERLATIVE_RE.search(s):
        return _match(
            GrammarKind.SUPERLATIVE,
            "Superlative (the most ~ / the ~est)",
            "💡 This sentence has a superlative!",
            "💡 the + most + adjective, or the + ~est!\n→ \"the most ...\".",
            "💡 Structure: the most ~/the ~est + noun\n→ the and most/~est are a pair!",
        )
    if AS_AS_RE.search(s):
        return _match(
            GrammarKind.AS_AS,
            "Equal comparison (as ~ as)",
            "💡 This sentence has an as ~ as comparison!",
            "💡 as + adjective/adverb + as = \"just as ... as\"!\n→ The adjective or adverb goes between the two as.",
            "💡 Structure: A + be + as + adjective + as + B\n→ as and as are a pair!",
        )
    return None


def detect_that_clause(s: str, words: List[str]) -> Optional[GrammarStructureMatch]:
    if not THAT_CLAUSE_RE.search(s):
        return None
    return _match(
        GrammarKind.THAT_CLAUSE,
        "That-clause (noun clause)",
        "💡 A that-clause follows the verb as its object!",
        "💡 verb + (that) + subject + verb = noun clause!\n→ \"think / believe / know that ...\"",
        "💡 Structure: subject + verb + (that) + [S + V ...]\n→ The whole that-clause is the object chunk!",
    )


def detect_participial_construction(s: str, words: List[str]) -> Optional[GrammarStructureMatch]:
    if not (PARTICIPIAL_START_RE.search(s) and "," in s):
        return None
    return _match(
        GrammarKind.PARTICIPIAL_CONSTRUCTION,
        "Participial construction (V-ing ~, S + V)",
        "💡 This sentence starts with a participial construction!",
        "💡 V-ing ~, subject + verb = participial construction!\n→ \"while / because / when doing ...\".",
        "💡 Structure: [V-ing + ...], + subject + verb\n→ Comma after the participle phrase, then the main clause!",
    )


# Detection priority, highest first
RULES: Sequence[Rule] = (
    detect_to_infinitive,
    detect_gerund,
    detect_passive,
    detect_relative_clause,
    detect_postpositive_participle,
    detect_it_cleft,
    detect_causative,
    detect_perception_verb,
    detect_adverb_clause,
    detect_perfect_tense,
    detect_comparison,
    detect_that_clause,
    detect_participial_construction,
)


def classify(sentence_text: str) -> List[GrammarStructureMatch]:
    """Detect the constructs of a sentence, highest priority first. May be empty."""
    s = sentence_text.lower()
    words = [w for w in re.sub(r"[.,!?]", "", s).split() if w]
    structures = []
    for rule in RULES:
        match = rule(s, words)
        if match is not None:
            structures.append(match)
    logger.debug(f"Classified {sentence_text!r}: {[m.kind.value for m in structures]}")
    return structures


def primary_structure(sentence_text: str) -> Optional[GrammarStructureMatch]:
    """The construct that drives the hint for a sentence, if any."""
    structures = classify(sentence_text)
    return structures[0] if structures else None
