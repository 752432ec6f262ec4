"""Bundled practice pieces in compact notation."""

from typing import Final

from intonate.notation_parser import parse_notation
from intonate.sheet_models import Sheet

SAMPLE_SHEETS: Final[dict[str, str]] = {
    "twinkle-twinkle": """T:Twinkle Twinkle Little Star
C:Traditional
M:4/4
K:C
C C G G | A A G2 | F F E E | D D C2 |
G G F F | E E D2 | G G F F | E E D2 |
C C G G | A A G2 | F F E E | D D C2 |""",
    "ode-to-joy": """T:Ode to Joy (simplified)
C:Beethoven
M:4/4
K:C
E E F G | G F E D | C C D E | E D D2 |
E E F G | G F E D | C C D E | D C C2 |""",
    "mary-lamb": """T:Mary Had a Little Lamb
C:Traditional
M:4/4
K:C
E D C D | E E E2 | D D D2 | E G G2 |
E D C D | E E E E | D D E D | C2 C2 |""",
    "simple-scale": """T:Simple G Major Scale
C:Exercise
M:4/4
K:G
G A B c | d e ^f g | g ^f e d | c B A G |""",
}

DEFAULT_SAMPLE: Final[str] = "twinkle-twinkle"


def load_sample(name: str) -> Sheet:
    """
    Parse one of the bundled pieces.

    Raises:
        KeyError: If *name* is not in SAMPLE_SHEETS.
    """
    try:
        text = SAMPLE_SHEETS[name]
    except KeyError:
        available = ", ".join(sorted(SAMPLE_SHEETS))
        raise KeyError(f"Unknown sample '{name}'. Available: {available}.") from None
    return parse_notation(text)
