"""Break activity suggestions, scaled to how long the child just focused."""

from typing import Dict, List

# (max_focus_minutes, suggestions); the last tier catches everything longer
_SUGGESTION_TIERS = [
    (10, [
        ("Look away from screen", "20 seconds", "eye-rest"),
        ("Take 3 deep breaths", "30 seconds", "breathing"),
        ("Drink some water", "1 minute", "hydration"),
    ]),
    (20, [
        ("Walk around the room", "2 minutes", "movement"),
        ("Look at something 20 feet away", "20 seconds", "eye-rest"),
        ("Stretch your hands and wrists", "1 minute", "stretching"),
        ("Hydrate and snack", "2 minutes", "nutrition"),
    ]),
    (30, [
        ("Take a short walk", "3-5 minutes", "movement"),
        ("Practice mindfulness", "2 minutes", "mental-reset"),
        ("Eye exercises", "1 minute", "eye-care"),
        ("Full body stretch", "3 minutes", "stretching"),
        ("Healthy snack and water", "3 minutes", "nutrition"),
    ]),
    (None, [
        ("Go for a walk outside", "5-10 minutes", "movement"),
        ("Meditation or deep breathing", "5 minutes", "mental-reset"),
        ("Look at nature or distant objects", "2 minutes", "eye-rest"),
        ("Full body stretching routine", "5 minutes", "stretching"),
        ("Healthy meal or substantial snack", "5 minutes", "nutrition"),
        ("Listen to calming music", "3 minutes", "relaxation"),
    ]),
]


def get_break_suggestions(focus_minutes: float) -> List[Dict[str, str]]:
    """
    Get break ideas for a break that follows `focus_minutes` of study.

    Returns:
        List of {"activity", "duration", "type"} dicts.
    """
    for limit, suggestions in _SUGGESTION_TIERS:
        if limit is None or focus_minutes <= limit:
            return [
                {"activity": activity, "duration": duration, "type": kind}
                for activity, duration, kind in suggestions
            ]
    return []
