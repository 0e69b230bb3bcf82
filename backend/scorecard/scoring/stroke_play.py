"""Stroke-play totals for a single player's card."""
from typing import Dict, Iterable, List, Mapping, Optional

FRONT_NINE = range(1, 10)
BACK_NINE = range(10, 19)


def _nine(holes: List[Dict], numbers: range) -> Dict:
    subset = [h for h in holes if h["hole"] in numbers and h["strokes"] is not None]
    score = sum(h["strokes"] for h in subset)
    par = sum(h["par"] for h in subset)
    return {"score": score, "par": par, "toPar": score - par}


def summarize(hole_scores: Iterable[Mapping]) -> Dict:
    """Summarize a card given ``{hole, par, strokes}`` items.

    Holes without strokes are ignored for every total, so a partially played
    card reports to-par through the holes actually scored.
    """
    holes = [
        {"hole": int(h["hole"]), "par": int(h["par"]), "strokes": h.get("strokes")}
        for h in hole_scores
    ]
    played = [h for h in holes if h["strokes"] is not None]
    gross = sum(h["strokes"] for h in played)
    par_played = sum(h["par"] for h in played)

    diffs = [
        {"hole": h["hole"], "strokes": h["strokes"], "par": h["par"], "diff": h["strokes"] - h["par"]}
        for h in played
    ]
    ordered = sorted(diffs, key=lambda h: (h["diff"], h["hole"]))

    return {
        "gross": gross,
        "holesPlayed": len(played),
        "par": par_played,
        "toPar": gross - par_played if played else None,
        "frontNine": _nine(holes, FRONT_NINE),
        "backNine": _nine(holes, BACK_NINE),
        "stats": {
            "birdiesOrBetter": sum(1 for h in diffs if h["diff"] <= -1),
            "pars": sum(1 for h in diffs if h["diff"] == 0),
            "bogeys": sum(1 for h in diffs if h["diff"] == 1),
            "doublePlus": sum(1 for h in diffs if h["diff"] >= 2),
        },
        "bestHoles": ordered[:3],
        "worstHoles": list(reversed(ordered[-3:])),
    }


def format_score_to_par(score_to_par: Optional[int]) -> str:
    if score_to_par is None:
        return "-"
    if score_to_par == 0:
        return "E"
    return f"+{score_to_par}" if score_to_par > 0 else str(score_to_par)
