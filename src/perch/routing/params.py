"""Path parameter converters for route-map keys like ``{id:int}``."""


# (regex_pattern, python_type) for each supported converter.
# Patterns match one decoded segment, which may contain "/" (from %2F).
CONVERTERS: dict[str, tuple[str, type]] = {
    "str": (r".+", str),
    "int": (r"\d+", int),
    "float": (r"\d+(?:\.\d+)?", float),
    "path": (r".+", str),
}


def convert_param(value: str, param_type: str) -> str | int | float:
    """Convert a captured segment string to the converter's type.

    Raises ``ValueError`` if the string cannot be converted.
    Raises ``KeyError`` if *param_type* is not a registered converter.
    """
    _, target_type = CONVERTERS[param_type]
    return target_type(value)
