ANIMAL_NAMES = [
    "ant", "eel", "mole", "sloth", "ape", "emu", "monkey", "snail", "bat", "falcon",
    "mouse", "snake", "bear", "fish", "otter", "spider", "bee", "fly", "parrot", "squid",
    "bird", "fox", "panda", "swan", "bison", "frog", "pig", "tiger", "camel", "gecko",
    "pigeon", "toad", "cat", "goat", "pony", "turkey", "cobra", "goose", "pug", "turtle",
    "crow", "hamster", "rabbit", "viper", "deer", "horse", "rat", "wasp", "dog", "jaguar",
    "raven", "whale", "dove", "koala", "seal", "wolf", "duck", "lion", "shark", "worm",
    "eagle", "lizard", "sheep", "zebra",
]
_INDEX = {name: i for i, name in enumerate(ANIMAL_NAMES)}
_BASE = len(ANIMAL_NAMES)


def to_animal_names(number: int) -> str:
    """Render an id as dash-separated animals, most significant first."""
    if number < 0:
        raise ValueError("ids are unsigned")
    out = []
    while number:
        number, r = divmod(number, _BASE)
        out.append(ANIMAL_NAMES[r])
    return "-".join(reversed(out)) or ANIMAL_NAMES[0]


def to_u64(slug: str) -> int:
    number = 0
    for part in slug.strip().lower().split("-"):
        if part not in _INDEX:
            raise ValueError(f"Unknown animal {part!r}")
        number = number * _BASE + _INDEX[part]
    if number >= 1 << 64:
        raise ValueError("id out of range")
    return number
