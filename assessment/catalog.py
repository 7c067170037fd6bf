"""Starting categories and symptom choices shown before the first question."""

from typing import Dict, List

CATEGORY_HINTS: Dict[str, str] = {
    "I am feeling...":
        "Choose this if you are experiencing any discomfort like pain or tension",
    "I am having trouble with...":
        "Choose this if you have functional issues like breathing or moving",
    "I am noticing...":
        "Choose this if you see physical changes in your body like a rash or weight loss",
}

SYMPTOM_OPTIONS: Dict[str, List[str]] = {
    "I am feeling...": [
        "Fatigued / Weak / Shaky",
        "Dizzy / Lightheaded",
        "Pain",
        "Nauseous / Queasy",
        "Fever / Chills",
        "Numbness / Tingling",
        "Other",
    ],
    "I am having trouble with...": [
        "Breathing Issues (Shortness of Breath, Wheezing, Chest Tightness)",
        "Sleeping Issues (Trouble Falling Asleep, Staying Asleep, Unrested Sleep)",
        "Eating Issues (Loss of Appetite, Difficulty Swallowing)",
        "Moving Issues (Weakness, Stiffness, Painful Joints, Coordination Problems)",
        "Speaking / Thinking Clearly",
        "Bladder / Bowel Control Issues",
        "Vision / Hearing Changes",
        "Other",
    ],
    "I am noticing...": [
        "Unexplained Weight Loss / Gain",
        "Swelling (Hands, Feet, Face, Abdomen, Joints)",
        "Skin Changes (Rash, Bruising, Peeling)",
        "Lumps, Hair Loss, or Other Growths",
        "Urine / Bowel Changes (Color, Frequency, Pain, Constipation, Diarrhea, Blood in Stool)",
        "Other",
    ],
}


def list_categories() -> List[Dict]:
    return [
        {"title": title, "hint": hint, "symptoms": SYMPTOM_OPTIONS[title]}
        for title, hint in CATEGORY_HINTS.items()
    ]
