"""Output module for GroupHound results."""

# Shared color scheme for membership output
COLORS = {
    "header": "bold cyan",
    "border": "cyan",
    "fsp": "bold magenta",
    "user": "green",
    "group": "yellow",
    "label": "dim",
    "value": "white",
    "warning": "yellow",
    "error": "red",
    "success": "green",
}

# Cycled per source domain so each domain's rows share one color
DOMAIN_PALETTE = [
    "bright_cyan",
    "bright_green",
    "bright_yellow",
    "bright_magenta",
    "bright_blue",
    "bright_red",
]


def domain_color(index: int) -> str:
    return DOMAIN_PALETTE[index % len(DOMAIN_PALETTE)]
