"""
NPC Prompt Builder
Turns a generation request and its settings into the instruction sent to the LLM.
"""

from app.schemas.npc import GenerationRequest, GenerationSettings


SYSTEM_PROMPT = (
    "You are an expert D&D Dungeon Master and character creator. Generate detailed, "
    "creative NPCs that fit seamlessly into D&D campaigns. Always provide structured "
    "responses that can be easily parsed."
)

# Label used for each desired trait, in prompt order
TRAIT_LABELS = {
    "race": "Race",
    "name": "Name",
    "class_": "Class",
    "personality_traits": "Personality",
    "appearance": "Appearance",
    "other": "Other",
}

CHECKLIST = [
    "Primary name and 3-5 alternative name options",
    "Race, class, and background",
    "Personality traits, ideals, bonds, and flaws",
    "Physical appearance and mannerisms",
    "Occupation and typical location",
    "How they integrate into the story/campaign",
]

STATS_ITEM = "Full D&D 5e stats including ability scores, AC, HP, skills, and equipment"


def build_npc_prompt(request: GenerationRequest, settings: GenerationSettings) -> str:
    """
    Build the user prompt for an NPC generation.

    Pure function: identical inputs always give the identical string.
    """
    lines = [
        "Generate a D&D NPC with the following requirements:",
        "",
        f"Role: {request.role}",
        f"Story Integration: {request.story_fit}",
    ]

    if request.campaign_context:
        lines.append(f"Campaign Context: {request.campaign_context}")

    traits = request.desired_traits.present()
    if traits:
        lines += ["", "Desired Traits:"]
        for field, label in TRAIT_LABELS.items():
            if field in traits:
                lines.append(f"- {label}: {traits[field]}")

    lines += [
        "",
        f"Generation Style: {settings.creativity_level.value} creativity, "
        f"{settings.setting_style.value} setting, {settings.tone.value} tone",
        "",
        "Please provide:",
    ]
    lines += [f"{i}. {item}" for i, item in enumerate(CHECKLIST, start=1)]

    if request.include_stats:
        lines.append(f"{len(CHECKLIST) + 1}. {STATS_ITEM}")
        lines += ["", "Include the full statistics block."]
    else:
        lines += ["", "Do not include game statistics (ability scores, AC, HP, skills or equipment)."]

    lines += ["", "Format the response as a structured character sheet that can be easily parsed."]
    return "\n".join(lines)
