# Gradient colors accepted by Space metadata (colorFrom / colorTo).
COLORS: tuple[str, ...] = (
    "red",
    "yellow",
    "green",
    "blue",
    "indigo",
    "purple",
    "pink",
    "gray",
)
