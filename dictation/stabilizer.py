"""Stabilisierung der Live-Vorschau.

Streaming-Pässe dekodieren das wachsende Audiofenster jedes Mal neu, die
Texte schwanken daher zwischen Pässen. `stabilize` hält den bereits
bestätigten Kopf fest und hängt nur neue Inhalte an, damit die Vorschau
wächst statt zu flackern.
"""

MAX_OVERLAP_SHIFT = 150
MIN_OVERLAP_CAP = 20


def _common_prefix_length(a: str, b: str) -> int:
    length = 0
    for ca, cb in zip(a, b):
        if ca != cb:
            break
        length += 1
    return length


def _splits_word(text: str, index: int) -> bool:
    return not text[index - 1].isspace() and not text[index].isspace()


def stabilize(confirmed: str, new: str) -> str:
    """Verschmilzt einen neuen Teil-Transkript-Stand mit dem bestätigten Text.

    Regeln, in dieser Reihenfolge:

    1. `new` wird getrimmt; leer → `confirmed`. Leeres `confirmed` → `new`.
    2. `new` beginnt mit `confirmed` → `new` (einfaches Wachstum).
    3. Gemeinsamer Präfix länger als die Hälfte von `confirmed` →
       `confirmed` + Rest von `new` ab dem Präfix.
    4. `new` beginnt mit einem Suffix von `confirmed` (Fenster ist weiter-
       gerutscht): kleinste Verschiebung mit ausreichender Überlappung
       gewinnt, angehängt wird nur der Teil hinter der Überlappung. Die
       Überlappung ist mindestens ein Zeichen lang und beginnt, sobald
       einer der Texte Leerzeichen enthält, an einer Wortgrenze.
    5. Sonst ist `new` grundlegend anders und wird übernommen.

    Vergleiche laufen über Codepoints.
    """
    if new == confirmed:
        return confirmed
    new = new.strip()
    if not new:
        return confirmed
    if not confirmed:
        return new

    if new.startswith(confirmed):
        return new

    match_end = _common_prefix_length(confirmed, new)
    if match_end > len(confirmed) // 2:
        return confirmed + new[match_end:]

    min_overlap = max(1, min(MIN_OVERLAP_CAP, len(confirmed) // 4))
    max_shift = min(len(confirmed) - min_overlap, MAX_OVERLAP_SHIFT)
    # Bei Schriften mit Leerzeichen beginnt eine Überlappung an einer Wortgrenze
    word_aligned = " " in confirmed or " " in new
    for shift in range(1, max_shift + 1):
        if word_aligned and _splits_word(confirmed, shift):
            continue
        if new.startswith(confirmed[shift:]):
            tail = new[len(confirmed) - shift:]
            return confirmed + tail if tail else confirmed

    return new


__all__ = ["stabilize"]
